# usuarios/tests.py
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase

from vendas.exceptions import NaoEncontrado, SemPermissao
from vendas.models import Reserva

from .models import Papel, Perfil
from .permissoes import CAPACIDADES, Solicitante, exigir, papel_de, pode, solicitante_de

User = get_user_model()


def _reserva(vendedor_id, status=Reserva.Status.PENDENTE):
    # basta o que a tabela de permissões consulta
    return SimpleNamespace(vendedor_id=vendedor_id, status=status, esta_pendente=status == Reserva.Status.PENDENTE)


class TabelaDeCapacidadesTests(SimpleTestCase):
    vendedor = Solicitante(1, Papel.VENDEDOR)
    outro = Solicitante(2, Papel.VENDEDOR)
    admin = Solicitante(3, Papel.ADMIN)
    dev = Solicitante(4, Papel.DEV)

    def test_todas_operacoes_cobrem_admin_e_dev(self):
        for operacao, escopos in CAPACIDADES.items():
            with self.subTest(operacao=operacao):
                self.assertIn(Papel.ADMIN, escopos)
                self.assertIn(Papel.DEV, escopos)

    def test_vendedor(self):
        minha = _reserva(1)
        self.assertTrue(pode(self.vendedor, "criar_reserva"))
        self.assertTrue(pode(self.vendedor, "ver_reserva", minha))
        self.assertTrue(pode(self.vendedor, "editar_reserva", minha))
        self.assertTrue(pode(self.vendedor, "ver_catalogo"))
        for operacao in ("aprovar_reserva", "rejeitar_reserva", "cancelar_venda", "gerir_catalogo", "bloquear_lote"):
            with self.subTest(operacao=operacao):
                self.assertFalse(pode(self.vendedor, operacao, minha if "reserva" in operacao else None))

    def test_vendedor_so_edita_pendente(self):
        concluida = _reserva(1, Reserva.Status.CONCLUIDA)
        with self.assertRaises(SemPermissao):
            exigir(self.vendedor, "editar_reserva", concluida)
        exigir(self.vendedor, "ver_reserva", concluida)

    def test_reserva_alheia_e_nao_encontrada(self):
        alheia = _reserva(1)
        for operacao in ("ver_reserva", "editar_reserva", "aprovar_reserva"):
            with self.subTest(operacao=operacao):
                with self.assertRaises(NaoEncontrado):
                    exigir(self.outro, operacao, alheia)

    def test_staff_pode_tudo(self):
        concluida = _reserva(1, Reserva.Status.CONCLUIDA)
        for solicitante in (self.admin, self.dev):
            for operacao in CAPACIDADES:
                with self.subTest(papel=solicitante.papel, operacao=operacao):
                    self.assertTrue(pode(solicitante, operacao, concluida))
            self.assertTrue(solicitante.is_staff)
        self.assertFalse(self.vendedor.is_staff)


class PapelDoUsuarioTests(TestCase):
    def test_papel_vem_do_perfil(self):
        user = User.objects.create_user(username="ana", password="x")
        Perfil.objects.create(usuario=user, papel=Papel.ADMIN)
        user = User.objects.get(pk=user.pk)
        self.assertEqual(papel_de(user), Papel.ADMIN)
        self.assertEqual(solicitante_de(user), Solicitante(user.pk, Papel.ADMIN))

    def test_sem_perfil_e_vendedor(self):
        user = User.objects.create_user(username="bia", password="x")
        self.assertEqual(papel_de(user), Papel.VENDEDOR)

    def test_superusuario_e_dev(self):
        user = User.objects.create_superuser(username="root", password="x", email="root@example.com")
        self.assertEqual(papel_de(user), Papel.DEV)
