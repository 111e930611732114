# cadastros/tests.py
import json
from decimal import Decimal
from types import SimpleNamespace

from django.contrib import admin, messages
from django.contrib.auth import get_user_model
from django.contrib.messages import get_messages
from django.contrib.messages.storage.fallback import FallbackStorage
from django.test import RequestFactory, TestCase
from django.urls import reverse

from usuarios.models import Papel, Perfil
from usuarios.permissoes import Solicitante
from vendas import services as vendas
from vendas.exceptions import Conflito, DadosInvalidos, EstadoInvalido, NaoEncontrado, SemPermissao

from . import services
from .admin import LoteAdmin, LoteAdminForm
from .models import Lote, Mapa, Quadra

User = get_user_model()

CLIENTE = {"nome": "João", "email": "joao@example.com", "telefone": "94999990000", "cpf": "12345678909"}


class InventarioBaseTestCase(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="x")
        Perfil.objects.create(usuario=self.admin, papel=Papel.ADMIN)
        self.vendedor = User.objects.create_user(username="vendedor", password="x")
        Perfil.objects.create(usuario=self.vendedor, papel=Papel.VENDEDOR)
        self.sa = Solicitante(self.admin.pk, Papel.ADMIN)
        self.sv = Solicitante(self.vendedor.pk, Papel.VENDEDOR)

        self.mapa = services.criar_mapa(self.sa, {"nome": "Loteamento Sol", "largura": 1200, "altura": 800})
        self.quadra_a = services.criar_quadra(self.sa, {"mapa_id": self.mapa.pk, "nome": "A"})
        self.quadra_b = services.criar_quadra(self.sa, {"mapa_id": self.mapa.pk, "nome": "B"})
        self.l1 = self._lote("L1", self.quadra_a)
        self.l2 = self._lote("L2", self.quadra_a)
        self.l3 = self._lote("L3", self.quadra_b)

    def _lote(self, numero, quadra=None, **extra):
        dados = {"mapa_id": self.mapa.pk, "numero": numero, "area_m2": "300", "preco": "150000"}
        if quadra is not None:
            dados["quadra_id"] = quadra.pk
        dados.update(extra)
        return services.criar_lote(self.sa, dados)


class CatalogoTests(InventarioBaseTestCase):
    def test_lote_novo_nasce_disponivel(self):
        self.assertEqual(self.l1.status, Lote.Status.DISPONIVEL)
        self.assertIsNone(self.l1.reserva_id)
        self.assertEqual(self.l1.preco_m2, Decimal("500.00"))

    def test_numero_repetido_no_mapa(self):
        with self.assertRaises(Conflito):
            self._lote("L1")
        outro = services.criar_mapa(self.sa, {"nome": "Outro"})
        lote = services.criar_lote(
            self.sa, {"mapa_id": outro.pk, "numero": "L1", "area_m2": "100", "preco": "1000"}
        )
        self.assertEqual(lote.numero, "L1")

    def test_preco_e_area_positivos(self):
        for campo, valor in (
            ("preco", "0"), ("preco", "-5"), ("area_m2", "0"), ("preco", "abc"),
            ("preco", "NaN"), ("preco", "Infinity"), ("area_m2", "-Infinity"),
        ):
            with self.subTest(campo=campo, valor=valor):
                with self.assertRaises(DadosInvalidos):
                    self._lote("X9", **{campo: valor})
        self.assertFalse(Lote.objects.filter(numero="X9").exists())

    def test_area_do_poligono(self):
        lote = self._lote("L4", area={"points": [{"x": 1, "y": 2}, {"x": 3, "y": 4}, {"x": 5, "y": 0}]})
        self.assertEqual(len(lote.area["points"]), 3)
        with self.assertRaises(DadosInvalidos):
            self._lote("L5", area={"points": [{"x": 1}]})

    def test_quadra_de_outro_mapa(self):
        outro = services.criar_mapa(self.sa, {"nome": "Outro"})
        with self.assertRaises(DadosInvalidos):
            services.criar_lote(
                self.sa,
                {"mapa_id": outro.pk, "numero": "L1", "area_m2": "1", "preco": "1", "quadra_id": self.quadra_a.pk},
            )

    def test_tipo_de_imagem_do_mapa(self):
        mapa = services.atualizar_mapa(self.sa, self.mapa.pk, {"tipo_imagem": "pdf"})
        self.assertEqual(mapa.tipo_imagem, Mapa.TipoImagem.PDF)
        for valor in ("", "gif", None):
            with self.subTest(valor=valor):
                with self.assertRaises(DadosInvalidos):
                    services.atualizar_mapa(self.sa, self.mapa.pk, {"tipo_imagem": valor})
        with self.assertRaises(DadosInvalidos):
            services.criar_mapa(self.sa, {"nome": "X", "tipo_imagem": "svg"})
        self.assertEqual(Mapa.objects.get(pk=self.mapa.pk).tipo_imagem, Mapa.TipoImagem.PDF)

    def test_quadra_repetida(self):
        with self.assertRaises(Conflito):
            services.criar_quadra(self.sa, {"mapa_id": self.mapa.pk, "nome": "A"})
        with self.assertRaises(Conflito):
            services.atualizar_quadra(self.sa, self.quadra_b.pk, {"nome": "A"})

    def test_atualizar_lote_nao_muda_status(self):
        lote = services.atualizar_lote(self.sa, self.l1.pk, {"preco": "160000", "status": "VEND"})
        self.assertEqual(lote.preco, Decimal("160000"))
        self.assertEqual(Lote.objects.get(pk=self.l1.pk).status, Lote.Status.DISPONIVEL)

    def test_vendedor_nao_mexe_no_catalogo(self):
        with self.assertRaises(SemPermissao):
            services.criar_mapa(self.sv, {"nome": "X"})
        with self.assertRaises(SemPermissao):
            services.atualizar_lote(self.sv, self.l1.pk, {"preco": "1"})
        with self.assertRaises(SemPermissao):
            services.definir_bloqueio(self.sv, self.l1.pk, True)

    def test_mapa_inexistente(self):
        with self.assertRaises(NaoEncontrado):
            services.obter_mapa(999999)
        with self.assertRaises(NaoEncontrado):
            services.criar_lote(self.sa, {"mapa_id": 999999, "numero": "L1", "area_m2": "1", "preco": "1"})


class RenomearTests(InventarioBaseTestCase):
    def test_renomear(self):
        lote = services.renomear_lote(self.sa, self.l1.pk, "L10")
        self.assertEqual(lote.numero, "L10")

    def test_renomear_para_numero_existente(self):
        with self.assertRaises(Conflito) as ctx:
            services.renomear_lote(self.sa, self.l1.pk, "L2")
        self.assertEqual(ctx.exception.lotes, [self.l2.pk])
        self.assertEqual(Lote.objects.get(pk=self.l1.pk).numero, "L1")

    def test_atualizar_com_numero_existente(self):
        with self.assertRaises(Conflito):
            services.atualizar_lote(self.sa, self.l1.pk, {"numero": "L3"})

    def test_renomear_e_mudar_preco_juntos(self):
        services.atualizar_lote(
            self.sa, self.l1.pk, {"numero": "L99", "preco": "1.00", "area_m2": "10", "descricao": "esquina"}
        )
        lote = Lote.objects.get(pk=self.l1.pk)
        self.assertEqual(lote.numero, "L99")
        self.assertEqual(lote.preco, Decimal("1.00"))
        self.assertEqual(lote.area_m2, Decimal("10.00"))
        self.assertEqual(lote.descricao, "esquina")
        self.assertEqual(lote.status, Lote.Status.DISPONIVEL)

    def test_renomear_com_preco_invalido_nao_renomeia(self):
        with self.assertRaises(DadosInvalidos):
            services.atualizar_lote(self.sa, self.l1.pk, {"numero": "L99", "preco": "0"})
        self.assertEqual(Lote.objects.get(pk=self.l1.pk).numero, "L1")


class BloqueioTests(InventarioBaseTestCase):
    def test_bloquear_e_desbloquear(self):
        lote = services.definir_bloqueio(self.sa, self.l1.pk, True)
        self.assertEqual(lote.status, Lote.Status.BLOQUEADO)
        self.assertFalse(services.lote_disponivel(self.l1.pk))
        lote = services.definir_bloqueio(self.sa, self.l1.pk, False)
        self.assertEqual(lote.status, Lote.Status.DISPONIVEL)
        self.assertTrue(services.lote_disponivel(self.l1.pk))

    def test_bloquear_de_novo_nao_faz_nada(self):
        services.definir_bloqueio(self.sa, self.l1.pk, True)
        lote = services.definir_bloqueio(self.sa, self.l1.pk, True)
        self.assertEqual(lote.status, Lote.Status.BLOQUEADO)

    def test_lote_reservado_nao_bloqueia(self):
        reserva = vendas.criar_reserva(self.sv, [self.l1.pk], CLIENTE)
        with self.assertRaises(EstadoInvalido) as ctx:
            services.definir_bloqueio(self.sa, self.l1.pk, True)
        self.assertEqual(ctx.exception.lotes, [self.l1.pk])
        lote = Lote.objects.get(pk=self.l1.pk)
        self.assertEqual(lote.status, Lote.Status.RESERVADO)
        self.assertEqual(lote.reserva_id, reserva.pk)

    def test_trocar_status_so_para_bloqueio(self):
        with self.assertRaises(EstadoInvalido):
            services.trocar_status(self.l1.pk, Lote.Status.DISPONIVEL, Lote.Status.VENDIDO)
        self.assertFalse(services.trocar_status(self.l1.pk, Lote.Status.BLOQUEADO, Lote.Status.DISPONIVEL))
        self.assertTrue(services.trocar_status(self.l1.pk, Lote.Status.DISPONIVEL, Lote.Status.BLOQUEADO))


class ExclusaoTests(InventarioBaseTestCase):
    def test_excluir_quadra_com_lote_reservado(self):
        vendas.criar_reserva(self.sv, [self.l2.pk], CLIENTE)
        with self.assertRaises(EstadoInvalido) as ctx:
            services.excluir_quadra(self.sa, self.quadra_a.pk)
        self.assertEqual(ctx.exception.lotes, [self.l2.pk])
        self.assertEqual(ctx.exception.status_atual, "com_lotes_ativos")
        self.assertTrue(Quadra.objects.filter(pk=self.quadra_a.pk).exists())
        self.assertEqual(Lote.objects.filter(quadra=self.quadra_a).count(), 2)

    def test_excluir_quadra_livre_leva_os_lotes(self):
        services.definir_bloqueio(self.sa, self.l3.pk, True)
        services.excluir_quadra(self.sa, self.quadra_b.pk)
        self.assertFalse(Lote.objects.filter(pk=self.l3.pk).exists())
        self.assertEqual(Lote.objects.filter(mapa=self.mapa).count(), 2)

    def test_excluir_lote_vendido(self):
        reserva = vendas.criar_reserva(self.sv, [self.l1.pk], CLIENTE)
        vendas.aprovar_reserva(self.sa, reserva.pk)
        with self.assertRaises(EstadoInvalido):
            services.excluir_lote(self.sa, self.l1.pk)
        self.assertTrue(Lote.objects.filter(pk=self.l1.pk).exists())

    def test_excluir_lote_depois_de_cancelada_mantem_historico(self):
        reserva = vendas.criar_reserva(self.sv, [self.l1.pk], CLIENTE)
        vendas.rejeitar_reserva(self.sa, reserva.pk)
        services.excluir_lote(self.sa, self.l1.pk)
        item = reserva.itens.get()
        item.refresh_from_db()
        self.assertIsNone(item.lote_id)
        self.assertEqual(item.numero_lote, "L1")

    def test_excluir_mapa(self):
        reserva = vendas.criar_reserva(self.sv, [self.l3.pk], CLIENTE)
        with self.assertRaises(EstadoInvalido) as ctx:
            services.excluir_mapa(self.sa, self.mapa.pk)
        self.assertEqual(ctx.exception.lotes, [self.l3.pk])

        vendas.rejeitar_reserva(self.sa, reserva.pk)
        services.excluir_mapa(self.sa, self.mapa.pk)
        self.assertFalse(Mapa.objects.filter(pk=self.mapa.pk).exists())
        self.assertFalse(Lote.objects.exists())


class EstatisticasTests(InventarioBaseTestCase):
    def test_contagem_por_status(self):
        reserva = vendas.criar_reserva(self.sv, [self.l1.pk], CLIENTE)
        vendas.criar_reserva(self.sv, [self.l2.pk], CLIENTE)
        vendas.aprovar_reserva(self.sa, reserva.pk)
        services.definir_bloqueio(self.sa, self.l3.pk, True)
        self._lote("L4")
        self.assertEqual(
            services.estatisticas_lotes(self.mapa.pk),
            {"available": 1, "reserved": 1, "sold": 1, "blocked": 1},
        )

    def test_listar_lotes_por_quadra(self):
        self.assertEqual(
            [l.numero for l in services.listar_lotes(self.mapa.pk, self.quadra_a.pk)], ["L1", "L2"]
        )
        self.assertEqual(len(services.listar_lotes(self.mapa.pk)), 3)


class CatalogoApiTests(InventarioBaseTestCase):
    def _post(self, url, dados=None):
        return self.client.post(url, data=json.dumps(dados or {}), content_type="application/json")

    def test_criar_lote_pela_api(self):
        self.client.force_login(self.admin)
        resp = self._post(
            reverse("cadastros:lote_criar"),
            {"mapa_id": self.mapa.pk, "quadra_id": self.quadra_b.pk, "numero": "L9", "area_m2": "250", "preco": "80000"},
        )
        self.assertEqual(resp.status_code, 201)
        corpo = resp.json()
        self.assertEqual(corpo["status"], "DISP")
        self.assertEqual(corpo["quadra_nome"], "B")
        self.assertEqual(corpo["preco_m2"], "320.00")

    def test_numero_repetido_responde_409(self):
        self.client.force_login(self.admin)
        resp = self._post(reverse("cadastros:lote_renomear", args=[self.l1.pk]), {"numero": "L2"})
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["detalhes"]["lotes"], [self.l2.pk])

    def test_bloqueio_pela_api(self):
        self.client.force_login(self.admin)
        resp = self._post(reverse("cadastros:lote_bloqueio", args=[self.l1.pk]), {"bloqueado": True})
        self.assertEqual(resp.json()["status"], "BLOQ")
        resp = self._post(reverse("cadastros:lote_bloqueio", args=[self.l1.pk]), {"bloqueado": False})
        self.assertEqual(resp.json()["status"], "DISP")

    def test_vendedor_recebe_403(self):
        self.client.force_login(self.vendedor)
        resp = self._post(reverse("cadastros:lote_excluir", args=[self.l1.pk]))
        self.assertEqual(resp.status_code, 403)
        self.assertTrue(Lote.objects.filter(pk=self.l1.pk).exists())

    def test_excluir_quadra_com_lote_ativo_responde_409(self):
        vendas.criar_reserva(self.sv, [self.l1.pk], CLIENTE)
        self.client.force_login(self.admin)
        resp = self._post(reverse("cadastros:quadra_excluir", args=[self.quadra_a.pk]))
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["codigo"], "estado_invalido")
        self.assertEqual(resp.json()["detalhes"]["lotes"], [self.l1.pk])


class LoteAdminTests(InventarioBaseTestCase):
    def setUp(self):
        super().setUp()
        self.model_admin = LoteAdmin(Lote, admin.site)

    def _request(self, lote):
        request = RequestFactory().post(f"/admin/cadastros/lote/{lote.pk}/change/")
        request.user = self.admin
        request.session = {}
        request._messages = FallbackStorage(request)
        return request

    def _dados_formulario(self, **extra):
        dados = {
            "mapa": self.mapa.pk, "quadra": self.quadra_a.pk, "numero": "L9",
            "area_m2": "300", "preco": "150000", "descricao": "", "caracteristicas": "[]", "area": "",
        }
        dados.update(extra)
        return dados

    def test_edicao_nao_desfaz_reserva_feita_no_meio(self):
        aberto_no_admin = Lote.objects.get(pk=self.l1.pk)
        reserva = vendas.criar_reserva(self.sv, [self.l1.pk], CLIENTE)
        form = SimpleNamespace(changed_data=["preco"], cleaned_data={"preco": Decimal("160000")})

        self.model_admin.save_model(self._request(aberto_no_admin), aberto_no_admin, form, True)

        lote = Lote.objects.get(pk=self.l1.pk)
        self.assertEqual(lote.preco, Decimal("160000.00"))
        self.assertEqual(lote.status, Lote.Status.RESERVADO)
        self.assertEqual(lote.reserva_id, reserva.pk)

    def test_recusa_volta_ao_formulario_sem_sucesso(self):
        lote = Lote.objects.get(pk=self.l1.pk)
        request = self._request(lote)
        form = SimpleNamespace(changed_data=["numero"], cleaned_data={"numero": "L2"})

        self.model_admin.save_model(request, lote, form, True)
        resp = self.model_admin.response_change(request, lote)

        self.assertEqual(resp.status_code, 302)
        self.assertEqual(resp.url, request.path)
        self.assertEqual([m.level for m in get_messages(request)], [messages.ERROR])
        self.assertIsNone(self.model_admin.log_change(request, lote, "alterado"))
        self.assertEqual(Lote.objects.get(pk=self.l1.pk).numero, "L1")

    def test_mapa_fixo_depois_de_criado(self):
        request = self._request(self.l1)
        self.assertIn("mapa", self.model_admin.get_readonly_fields(request, self.l1))
        self.assertNotIn("mapa", self.model_admin.get_readonly_fields(request, None))

    def test_formulario_recusa_quadra_de_outro_mapa(self):
        outro = services.criar_mapa(self.sa, {"nome": "Outro"})
        form = LoteAdminForm(data=self._dados_formulario(mapa=outro.pk))
        self.assertFalse(form.is_valid())
        self.assertIn("quadra", form.errors)

        form = LoteAdminForm(data=self._dados_formulario(quadra=self.quadra_b.pk), instance=Lote.objects.get(pk=self.l1.pk))
        form.fields.pop("mapa")
        self.assertTrue(form.is_valid(), form.errors)

    def test_formulario_recusa_preco_e_area_nao_positivos(self):
        form = LoteAdminForm(data=self._dados_formulario(preco="0", area_m2="-5"))
        self.assertFalse(form.is_valid())
        self.assertIn("preco", form.errors)
        self.assertIn("area_m2", form.errors)
