# vendas/tests.py
import json
import threading
from decimal import Decimal
from types import SimpleNamespace

from django.conf import settings
from django.contrib import admin, messages
from django.contrib.messages import get_messages
from django.contrib.messages.storage.fallback import FallbackStorage
from django.contrib.auth import get_user_model
from django.db import connection
from django.test import RequestFactory, SimpleTestCase, TestCase, TransactionTestCase
from django.urls import reverse

from cadastros.models import Lote, Mapa, Quadra
from usuarios.models import Papel, Perfil
from usuarios.permissoes import Solicitante

from . import services
from .admin import ReservaAdmin
from .exceptions import Conflito, DadosInvalidos, EstadoInvalido, NaoEncontrado, SemPermissao
from .models import Reserva
from .utils import FormaPagamento, calcular_condicoes, dividir_em_parcelas

User = get_user_model()

CLIENTE = {
    "nome": "Maria da Silva",
    "email": "maria@example.com",
    "telefone": "(94) 99999-0000",
    "cpf": "123.456.789-09",
}


def _usuario(username, papel=Papel.VENDEDOR):
    user = User.objects.create_user(username=username, password="senha-forte-123", email=f"{username}@example.com")
    Perfil.objects.create(usuario=user, papel=papel, telefone="94988887777", cpf="98765432100")
    return user


def _lote(mapa, numero, preco="150000.00", area="300.00", quadra=None, status=Lote.Status.DISPONIVEL):
    return Lote.objects.create(
        mapa=mapa, quadra=quadra, numero=numero, preco=Decimal(preco), area_m2=Decimal(area), status=status
    )


def _checar_invariantes(testcase):
    """Nenhum lote em mais de uma reserva ativa; status do lote bate com a reserva."""
    for lote in Lote.objects.all():
        ativas = Reserva.objects.filter(itens__lote=lote).exclude(status=Reserva.Status.CANCELADA)
        testcase.assertLessEqual(ativas.count(), 1, f"lote {lote.numero} em mais de uma reserva ativa")
        reserva = ativas.first()
        if reserva is None:
            testcase.assertIn(lote.status, (Lote.Status.DISPONIVEL, Lote.Status.BLOQUEADO))
            testcase.assertIsNone(lote.reserva_id)
        elif reserva.status == Reserva.Status.PENDENTE:
            testcase.assertEqual(lote.status, Lote.Status.RESERVADO)
            testcase.assertEqual(lote.reserva_id, reserva.pk)
        else:
            testcase.assertEqual(lote.status, Lote.Status.VENDIDO)
            testcase.assertEqual(lote.reserva_id, reserva.pk)


class CalculoCondicoesTests(SimpleTestCase):
    def test_preco_acordado_padrao_e_o_de_tabela(self):
        cond = calcular_condicoes(Decimal("150000"), Decimal("300"), FormaPagamento.CARNE)
        self.assertEqual(cond.preco_acordado, Decimal("150000.00"))
        self.assertEqual(cond.preco_m2_acordado, Decimal("500.00"))
        self.assertIsNone(cond.entrada)
        self.assertIsNone(cond.parcelas)

    def test_parcelado_calcula_saldo_e_parcela(self):
        cond = calcular_condicoes(
            Decimal("150000"), Decimal("300"), FormaPagamento.FINANCIAMENTO,
            preco_acordado="148000", entrada="20000", parcelas=12,
        )
        self.assertEqual(cond.preco_acordado, Decimal("148000.00"))
        self.assertEqual(cond.entrada, Decimal("20000.00"))
        self.assertEqual(cond.parcelas, 12)
        self.assertEqual(cond.saldo, Decimal("128000.00"))
        self.assertEqual(cond.valor_parcela, Decimal("10666.66"))

    def test_pagamento_unico_zera_entrada_e_parcelas(self):
        for forma in (FormaPagamento.PIX, FormaPagamento.DINHEIRO):
            cond = calcular_condicoes(
                Decimal("150000"), Decimal("300"), forma, preco_acordado="148000", entrada="20000", parcelas=12
            )
            self.assertIsNone(cond.entrada)
            self.assertIsNone(cond.parcelas)
            self.assertIsNone(cond.valor_parcela)
            self.assertEqual(cond.saldo, Decimal("148000.00"))

    def test_outro_aceita_entrada_mas_nao_parcelas(self):
        cond = calcular_condicoes(Decimal("1000"), Decimal("10"), FormaPagamento.OUTRO, entrada="100", parcelas=5)
        self.assertEqual(cond.entrada, Decimal("100.00"))
        self.assertIsNone(cond.parcelas)

    def test_mesmas_entradas_mesmo_resultado(self):
        args = (Decimal("99999.99"), Decimal("333"), FormaPagamento.CARTAO)
        kwargs = {"entrada": "1000", "parcelas": 7}
        self.assertEqual(calcular_condicoes(*args, **kwargs), calcular_condicoes(*args, **kwargs))

    def test_valores_invalidos(self):
        casos = [
            {"preco_acordado": "0"},
            {"preco_acordado": "-10"},
            {"preco_acordado": "abc"},
            {"entrada": "-1"},
            {"entrada": "2000"},
            {"parcelas": 0},
            {"parcelas": "doze"},
            {"preco_acordado": "NaN"},
            {"preco_acordado": "Infinity"},
            {"entrada": "-Infinity"},
            {"entrada": "sNaN"},
        ]
        for kwargs in casos:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(DadosInvalidos):
                    calcular_condicoes(Decimal("1000"), Decimal("10"), FormaPagamento.CARNE, **kwargs)

    def test_forma_desconhecida(self):
        with self.assertRaises(DadosInvalidos):
            calcular_condicoes(Decimal("1000"), Decimal("10"), "BITCOIN")

    def test_dividir_em_parcelas_fecha_o_total(self):
        vals = dividir_em_parcelas(Decimal("100.00"), 3)
        self.assertEqual(vals, [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")])
        self.assertEqual(sum(vals), Decimal("100.00"))
        self.assertEqual(dividir_em_parcelas(Decimal("10"), 0), [])


class ReservaBaseTestCase(TestCase):
    def setUp(self):
        self.vendedor = _usuario("vendedor1")
        self.outro_vendedor = _usuario("vendedor2")
        self.admin = _usuario("admin1", Papel.ADMIN)
        self.dev = _usuario("dev1", Papel.DEV)

        self.sv = Solicitante(self.vendedor.pk, Papel.VENDEDOR)
        self.sv2 = Solicitante(self.outro_vendedor.pk, Papel.VENDEDOR)
        self.sa = Solicitante(self.admin.pk, Papel.ADMIN)
        self.sd = Solicitante(self.dev.pk, Papel.DEV)

        self.mapa = Mapa.objects.create(nome="M1")
        self.quadra = Quadra.objects.create(mapa=self.mapa, nome="A")
        self.l7 = _lote(self.mapa, "L7", quadra=self.quadra)
        self.l1 = _lote(self.mapa, "L1", "90000.00", "250.00", quadra=self.quadra)
        self.l2 = _lote(self.mapa, "L2", "95000.00", "260.00", quadra=self.quadra)

    def _reservar(self, lotes_reservados, solicitante=None, **termos):
        return services.criar_reserva(
            solicitante or self.sv, [l.pk for l in lotes_reservados], CLIENTE, termos=termos
        )

    def _status(self, *lotes):
        return [Lote.objects.get(pk=l.pk).status for l in lotes]


class CicloDeVidaTests(ReservaBaseTestCase):
    def test_cenario_l7_reserva_aprova_cancela(self):
        reserva = services.criar_reserva(
            self.sv,
            [self.l7.pk],
            CLIENTE,
            termos={
                "forma_pagamento": FormaPagamento.FINANCIAMENTO,
                "lotes": {str(self.l7.pk): {"preco_acordado": "148000", "entrada": "20000", "parcelas": 12}},
            },
        )
        self.assertEqual(reserva.status, Reserva.Status.PENDENTE)
        self.assertEqual(reserva.vendedor_id, self.vendedor.pk)
        self.assertEqual(self._status(self.l7), [Lote.Status.RESERVADO])
        item = reserva.itens.get()
        self.assertEqual(item.preco_acordado, Decimal("148000.00"))
        self.assertEqual(item.entrada, Decimal("20000.00"))
        self.assertEqual(item.parcelas, 12)
        self.assertEqual(item.numero_lote, "L7")

        reserva = services.aprovar_reserva(self.sa, reserva.pk)
        self.assertEqual(reserva.status, Reserva.Status.CONCLUIDA)
        self.assertIsNotNone(reserva.concluida_em)
        self.assertEqual(self._status(self.l7), [Lote.Status.VENDIDO])
        _checar_invariantes(self)

        reserva = services.cancelar_venda(self.sa, reserva.pk)
        self.assertEqual(reserva.status, Reserva.Status.CANCELADA)
        self.assertEqual(self._status(self.l7), [Lote.Status.DISPONIVEL])
        self.assertIsNone(Lote.objects.get(pk=self.l7.pk).reserva_id)
        _checar_invariantes(self)

        # o lote pode entrar numa nova reserva
        nova = self._reservar([self.l7])
        self.assertEqual(nova.status, Reserva.Status.PENDENTE)
        _checar_invariantes(self)

    def test_ida_e_volta_com_dois_lotes(self):
        reserva = self._reservar([self.l1, self.l2])
        self.assertEqual(self._status(self.l1, self.l2), [Lote.Status.RESERVADO] * 2)
        self.assertEqual([i.lote_id for i in reserva.itens.all()], [self.l1.pk, self.l2.pk])

        services.aprovar_reserva(self.sd, reserva.pk)
        self.assertEqual(self._status(self.l1, self.l2), [Lote.Status.VENDIDO] * 2)

        services.cancelar_venda(self.sd, reserva.pk)
        self.assertEqual(self._status(self.l1, self.l2), [Lote.Status.DISPONIVEL] * 2)
        self.assertEqual(Reserva.objects.get(pk=reserva.pk).status, Reserva.Status.CANCELADA)

    def test_rejeitar_libera_lotes(self):
        reserva = self._reservar([self.l1, self.l2])
        reserva = services.rejeitar_reserva(self.sa, reserva.pk)
        self.assertEqual(reserva.status, Reserva.Status.CANCELADA)
        self.assertIsNotNone(reserva.cancelada_em)
        self.assertEqual(self._status(self.l1, self.l2), [Lote.Status.DISPONIVEL] * 2)
        _checar_invariantes(self)

    def test_rejeitar_de_novo_e_erro_de_estado_e_nao_mexe_em_lotes(self):
        reserva = self._reservar([self.l1])
        services.rejeitar_reserva(self.sa, reserva.pk)
        # outra reserva pega o lote liberado
        outra = self._reservar([self.l1], self.sv2)

        with self.assertRaises(EstadoInvalido) as ctx:
            services.rejeitar_reserva(self.sa, reserva.pk)
        self.assertEqual(ctx.exception.status_atual, Reserva.Status.CANCELADA)
        lote = Lote.objects.get(pk=self.l1.pk)
        self.assertEqual(lote.status, Lote.Status.RESERVADO)
        self.assertEqual(lote.reserva_id, outra.pk)

    def test_aprovar_reserva_concluida_e_erro_de_estado(self):
        reserva = self._reservar([self.l1])
        services.aprovar_reserva(self.sa, reserva.pk)
        with self.assertRaises(EstadoInvalido):
            services.aprovar_reserva(self.sa, reserva.pk)
        with self.assertRaises(EstadoInvalido):
            services.rejeitar_reserva(self.sa, reserva.pk)

    def test_cancelar_venda_exige_concluida(self):
        reserva = self._reservar([self.l1])
        with self.assertRaises(EstadoInvalido):
            services.cancelar_venda(self.sa, reserva.pk)
        self.assertEqual(self._status(self.l1), [Lote.Status.RESERVADO])

    def test_aprovacao_falha_inteira_se_um_lote_foi_alterado_por_fora(self):
        reserva = self._reservar([self.l1, self.l2])
        # alteração fora do fluxo normal
        Lote.objects.filter(pk=self.l2.pk).update(status=Lote.Status.VENDIDO)

        with self.assertRaises(EstadoInvalido) as ctx:
            services.aprovar_reserva(self.sa, reserva.pk)
        self.assertEqual(ctx.exception.lotes, [self.l2.pk])
        self.assertEqual(Lote.objects.get(pk=self.l1.pk).status, Lote.Status.RESERVADO)
        self.assertEqual(Reserva.objects.get(pk=reserva.pk).status, Reserva.Status.PENDENTE)


class CriacaoTests(ReservaBaseTestCase):
    def test_lista_vazia(self):
        with self.assertRaises(DadosInvalidos):
            services.criar_reserva(self.sv, [], CLIENTE)
        with self.assertRaises(DadosInvalidos):
            services.criar_reserva(self.sv, None, CLIENTE)
        self.assertFalse(Reserva.objects.exists())

    def test_lote_repetido_na_lista(self):
        with self.assertRaises(DadosInvalidos):
            services.criar_reserva(self.sv, [self.l1.pk, self.l1.pk], CLIENTE)

    def test_dados_do_cliente_obrigatorios(self):
        with self.assertRaises(DadosInvalidos) as ctx:
            services.criar_reserva(self.sv, [self.l1.pk], {"nome": "Sem email"})
        self.assertIn("cliente_email", ctx.exception.campos)
        self.assertEqual(self._status(self.l1), [Lote.Status.DISPONIVEL])

    def test_cpf_e_telefone_so_digitos(self):
        reserva = self._reservar([self.l1])
        self.assertEqual(reserva.cliente_cpf, "12345678909")
        self.assertEqual(reserva.cliente_telefone, "94999990000")

    def test_dados_do_vendedor_vem_do_usuario(self):
        reserva = self._reservar([self.l1])
        self.assertEqual(reserva.vendedor_nome, "vendedor1")
        self.assertEqual(reserva.vendedor_email, "vendedor1@example.com")
        self.assertEqual(reserva.vendedor_cpf, "98765432100")

    def test_conflito_nomeia_o_lote_e_nao_grava_nada(self):
        self._reservar([self.l1])
        with self.assertRaises(Conflito) as ctx:
            self._reservar([self.l1, self.l2], self.sv2)
        self.assertEqual(ctx.exception.lotes, [self.l1.pk])
        self.assertEqual(self._status(self.l2), [Lote.Status.DISPONIVEL])
        self.assertEqual(Reserva.objects.count(), 1)
        _checar_invariantes(self)

    def test_lote_bloqueado_nao_entra_e_os_outros_ficam_livres(self):
        Lote.objects.filter(pk=self.l2.pk).update(status=Lote.Status.BLOQUEADO)
        with self.assertRaises(Conflito) as ctx:
            self._reservar([self.l1, self.l2])
        self.assertEqual(ctx.exception.lotes, [self.l2.pk])
        self.assertEqual(self._status(self.l1, self.l2), [Lote.Status.DISPONIVEL, Lote.Status.BLOQUEADO])
        self.assertFalse(Reserva.objects.exists())

    def test_lote_inexistente_e_conflito(self):
        with self.assertRaises(Conflito) as ctx:
            services.criar_reserva(self.sv, [self.l1.pk, 999999], CLIENTE)
        self.assertEqual(ctx.exception.lotes, [999999])
        self.assertEqual(self._status(self.l1), [Lote.Status.DISPONIVEL])

    def test_condicoes_de_lote_fora_da_reserva(self):
        with self.assertRaises(DadosInvalidos):
            self._reservar([self.l1], lotes={str(self.l2.pk): {"preco_acordado": "1"}})

    def test_preco_invalido_desfaz_a_reserva(self):
        with self.assertRaises(DadosInvalidos):
            self._reservar([self.l1, self.l2], lotes={str(self.l2.pk): {"preco_acordado": "0"}})
        self.assertEqual(self._status(self.l1, self.l2), [Lote.Status.DISPONIVEL] * 2)
        self.assertFalse(Reserva.objects.exists())

    def test_pix_ignora_entrada_e_parcelas(self):
        reserva = self._reservar(
            [self.l1],
            forma_pagamento=FormaPagamento.PIX,
            lotes={str(self.l1.pk): {"entrada": "1000", "parcelas": 10}},
        )
        item = reserva.itens.get()
        self.assertIsNone(item.entrada)
        self.assertIsNone(item.parcelas)
        self.assertEqual(item.preco_acordado, Decimal("90000.00"))

    def test_preco_acordado_nao_numerico_finito(self):
        for valor in ("NaN", "Infinity"):
            with self.subTest(valor=valor):
                with self.assertRaises(DadosInvalidos):
                    self._reservar([self.l1], lotes={str(self.l1.pk): {"preco_acordado": valor}})
        self.assertEqual(self._status(self.l1), [Lote.Status.DISPONIVEL])
        self.assertFalse(Reserva.objects.exists())

    def test_condicoes_do_lote_precisam_ser_objeto(self):
        with self.assertRaises(DadosInvalidos) as ctx:
            self._reservar([self.l1], lotes={str(self.l1.pk): 5})
        self.assertIn(f"lotes.{self.l1.pk}", ctx.exception.campos)
        with self.assertRaises(DadosInvalidos):
            services.criar_reserva(self.sv, [self.l1.pk], "Maria")
        with self.assertRaises(DadosInvalidos):
            services.criar_reserva(self.sv, [self.l1.pk], CLIENTE, vendedor=["x"])
        self.assertEqual(self._status(self.l1), [Lote.Status.DISPONIVEL])


class PermissoesTests(ReservaBaseTestCase):
    def test_vendedor_nao_aprova_nem_rejeita(self):
        reserva = self._reservar([self.l1])
        for operacao in (services.aprovar_reserva, services.rejeitar_reserva, services.cancelar_venda):
            with self.subTest(operacao=operacao.__name__):
                with self.assertRaises(SemPermissao):
                    operacao(self.sv, reserva.pk)
        self.assertEqual(self._status(self.l1), [Lote.Status.RESERVADO])

    def test_reserva_de_outro_vendedor_parece_inexistente(self):
        reserva = self._reservar([self.l1])
        with self.assertRaises(NaoEncontrado):
            services.obter_reserva(self.sv2, reserva.pk)
        with self.assertRaises(NaoEncontrado):
            services.editar_reserva(self.sv2, reserva.pk, {"mensagem": "oi"})
        with self.assertRaises(NaoEncontrado):
            services.aprovar_reserva(self.sv2, reserva.pk)

    def test_reserva_inexistente(self):
        with self.assertRaises(NaoEncontrado):
            services.aprovar_reserva(self.sa, 424242)

    def test_listagem_do_vendedor_so_tem_as_dele(self):
        minha = self._reservar([self.l1])
        self._reservar([self.l2], self.sv2)
        self.assertEqual([r.pk for r in services.listar_reservas(self.sv)], [minha.pk])
        self.assertEqual(services.listar_reservas(self.sa).count(), 2)


class EdicaoTests(ReservaBaseTestCase):
    def test_vendedor_edita_a_propria_pendente(self):
        reserva = self._reservar(
            [self.l1, self.l2],
            forma_pagamento=FormaPagamento.CARNE,
            lotes={str(self.l1.pk): {"entrada": "5000", "parcelas": 24}},
        )
        reserva = services.editar_reserva(
            self.sv,
            reserva.pk,
            {
                "contrato": "CT-2025-001",
                "cliente": {"telefone": "94 3333-2222"},
                "lotes": {str(self.l2.pk): {"preco_acordado": "93000"}},
            },
        )
        self.assertEqual(reserva.contrato, "CT-2025-001")
        self.assertEqual(reserva.cliente_telefone, "9433332222")
        self.assertEqual(reserva.cliente_nome, CLIENTE["nome"])
        i1, i2 = reserva.itens.all()
        self.assertEqual((i1.entrada, i1.parcelas), (Decimal("5000.00"), 24))
        self.assertEqual(i2.preco_acordado, Decimal("93000.00"))
        self.assertEqual(self._status(self.l1, self.l2), [Lote.Status.RESERVADO] * 2)

    def test_trocar_para_pix_limpa_entrada_e_parcelas(self):
        reserva = self._reservar(
            [self.l1],
            forma_pagamento=FormaPagamento.FINANCIAMENTO,
            lotes={str(self.l1.pk): {"entrada": "5000", "parcelas": 24}},
        )
        reserva = services.editar_reserva(self.sv, reserva.pk, {"forma_pagamento": FormaPagamento.PIX})
        item = reserva.itens.get()
        self.assertIsNone(item.entrada)
        self.assertIsNone(item.parcelas)

    def test_vendedor_nao_edita_depois_de_aprovada(self):
        reserva = self._reservar([self.l1])
        services.aprovar_reserva(self.sa, reserva.pk)
        with self.assertRaises(SemPermissao):
            services.editar_reserva(self.sv, reserva.pk, {"contrato": "X"})

    def test_admin_edita_em_qualquer_status(self):
        reserva = self._reservar([self.l1])
        services.aprovar_reserva(self.sa, reserva.pk)
        reserva = services.editar_reserva(self.sa, reserva.pk, {"contrato": "CT-9"})
        self.assertEqual(reserva.contrato, "CT-9")
        self.assertEqual(reserva.status, Reserva.Status.CONCLUIDA)
        self.assertEqual(self._status(self.l1), [Lote.Status.VENDIDO])

    def test_edicao_invalida_nao_grava(self):
        reserva = self._reservar([self.l1])
        with self.assertRaises(DadosInvalidos):
            services.editar_reserva(self.sv, reserva.pk, {"contrato": "novo", "cliente": {"email": "invalido"}})
        self.assertEqual(Reserva.objects.get(pk=reserva.pk).contrato, "")

    def test_edicao_com_partes_que_nao_sao_objeto(self):
        reserva = self._reservar([self.l1])
        for termos in ({"cliente": "Maria"}, {"vendedor": 3}, {"lotes": {str(self.l1.pk): [1, 2]}}):
            with self.subTest(termos=termos):
                with self.assertRaises(DadosInvalidos):
                    services.editar_reserva(self.sv, reserva.pk, termos)
        self.assertEqual(Reserva.objects.get(pk=reserva.pk).cliente_nome, CLIENTE["nome"])


class LeituraTests(ReservaBaseTestCase):
    def test_pendentes_primeiro_e_mais_novas_primeiro(self):
        r1 = self._reservar([self.l1])
        r2 = self._reservar([self.l2])
        r3 = self._reservar([self.l7])
        services.aprovar_reserva(self.sa, r3.pk)
        self.assertEqual([r.pk for r in services.listar_reservas(self.sa)], [r2.pk, r1.pk, r3.pk])

    def test_filtros(self):
        r1 = self._reservar([self.l1])
        r2 = self._reservar([self.l2])
        services.rejeitar_reserva(self.sa, r2.pk)
        self.assertEqual([r.pk for r in services.listar_reservas(self.sa, status="CANC")], [r2.pk])
        self.assertEqual([r.pk for r in services.listar_reservas(self.sa, busca="L1")], [r1.pk])
        self.assertEqual(services.listar_reservas(self.sa, mapa_id=self.mapa.pk).count(), 2)
        with self.assertRaises(DadosInvalidos):
            services.listar_reservas(self.sa, status="XYZ")

    def test_pagina_da_reserva(self):
        reservas = [self._reservar([l]) for l in (self.l1, self.l2, self.l7)]
        # ordem: l7, l2, l1 (mais novas primeiro)
        info = services.pagina_da_reserva(self.sa, reservas[0].pk, por_pagina=2)
        self.assertEqual(info, {"pagina": 2, "posicao": 3, "por_pagina": 2})

    def test_estatisticas(self):
        r1 = self._reservar([self.l1])
        self._reservar([self.l2], self.sv2)
        services.aprovar_reserva(self.sa, r1.pk)
        self.assertEqual(
            services.estatisticas_reservas(self.sa),
            {"pending": 1, "completed": 1, "cancelled": 0, "total": 2},
        )
        self.assertEqual(services.estatisticas_reservas(self.sv2)["total"], 1)


class ApiTests(ReservaBaseTestCase):
    def _post(self, url, dados=None):
        return self.client.post(url, data=json.dumps(dados or {}), content_type="application/json")

    def test_criar_e_aprovar_pela_api(self):
        self.client.force_login(self.vendedor)
        resp = self._post(
            reverse("vendas:reservas"),
            {"lote_ids": [self.l7.pk], "cliente": CLIENTE, "forma_pagamento": "CARNE",
             "lotes": {str(self.l7.pk): {"preco_acordado": "148000", "entrada": "20000", "parcelas": 12}}},
        )
        self.assertEqual(resp.status_code, 201)
        corpo = resp.json()
        self.assertEqual(corpo["status"], "PEND")
        self.assertEqual(corpo["lotes"][0]["preco_acordado"], "148000.00")
        self.assertEqual(corpo["lotes"][0]["valor_parcela"], "10666.66")

        # vendedor não aprova
        resp = self._post(reverse("vendas:reserva_aprovar", args=[corpo["id"]]))
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["codigo"], "sem_permissao")

        self.client.force_login(self.admin)
        resp = self._post(reverse("vendas:reserva_aprovar", args=[corpo["id"]]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "CONC")

    def test_conflito_responde_409_com_lotes(self):
        self._reservar([self.l1])
        self.client.force_login(self.outro_vendedor)
        resp = self._post(reverse("vendas:reservas"), {"lote_ids": [self.l1.pk], "cliente": CLIENTE})
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["codigo"], "conflito")
        self.assertEqual(resp.json()["detalhes"]["lotes"], [self.l1.pk])

    def test_lista_vazia_responde_400(self):
        self.client.force_login(self.vendedor)
        resp = self._post(reverse("vendas:reservas"), {"lote_ids": [], "cliente": CLIENTE})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["codigo"], "dados_invalidos")

    def test_json_invalido(self):
        self.client.force_login(self.vendedor)
        resp = self.client.post(reverse("vendas:reservas"), data="{nope", content_type="application/json")
        self.assertEqual(resp.status_code, 400)

    def test_sem_login_responde_401(self):
        resp = self.client.get(reverse("vendas:reservas"))
        self.assertEqual(resp.status_code, 401)

    def test_metodo_errado_responde_405(self):
        self.client.force_login(self.admin)
        resp = self.client.get(reverse("vendas:reserva_aprovar", args=[1]))
        self.assertEqual(resp.status_code, 405)

    def test_reserva_de_outro_responde_404(self):
        reserva = self._reservar([self.l1])
        self.client.force_login(self.outro_vendedor)
        resp = self.client.get(reverse("vendas:reserva_detail", args=[reserva.pk]))
        self.assertEqual(resp.status_code, 404)

    def test_listagem_tem_envelope_de_polling(self):
        self._reservar([self.l1])
        self.client.force_login(self.vendedor)
        resp = self.client.get(reverse("vendas:reservas"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp["Cache-Control"], "no-store")
        corpo = resp.json()
        self.assertEqual(len(corpo["dados"]), 1)
        self.assertIn("gerado_em", corpo)
        self.assertEqual(corpo["intervalo_polling"], settings.LOTESYS_POLLING_SEGUNDOS)

    def test_pagina_pela_api(self):
        reserva = self._reservar([self.l1])
        self.client.force_login(self.vendedor)
        resp = self.client.get(reverse("vendas:reserva_pagina", args=[reserva.pk]), {"limit": 10})
        self.assertEqual(resp.json()["dados"], {"pagina": 1, "posicao": 1, "por_pagina": 10})


class ReservaAdminTests(ReservaBaseTestCase):
    def _request(self, reserva):
        request = RequestFactory().post(f"/admin/vendas/reserva/{reserva.pk}/change/")
        request.user = self.admin
        request.session = {}
        request._messages = FallbackStorage(request)
        return request

    def test_edicao_recusada_volta_ao_formulario_sem_sucesso(self):
        reserva = self._reservar([self.l1])
        model_admin = ReservaAdmin(Reserva, admin.site)
        request = self._request(reserva)
        form = SimpleNamespace(changed_data=["cliente_email"], cleaned_data={"cliente_email": "invalido"})

        model_admin.save_model(request, reserva, form, True)
        resp = model_admin.response_change(request, reserva)

        self.assertEqual(resp.status_code, 302)
        self.assertEqual(resp.url, request.path)
        self.assertEqual([m.level for m in get_messages(request)], [messages.ERROR])
        self.assertIsNone(model_admin.log_change(request, reserva, "alterado"))
        self.assertEqual(Reserva.objects.get(pk=reserva.pk).cliente_email, CLIENTE["email"])

    def test_edicao_valida_passa_pelo_servico(self):
        reserva = self._reservar([self.l1], forma_pagamento=FormaPagamento.CARNE,
                                 lotes={str(self.l1.pk): {"entrada": "1000", "parcelas": 10}})
        request = self._request(reserva)
        form = SimpleNamespace(changed_data=["forma_pagamento"], cleaned_data={"forma_pagamento": FormaPagamento.PIX})

        ReservaAdmin(Reserva, admin.site).save_model(request, reserva, form, True)

        self.assertFalse(getattr(request, "_servico_recusou", False))
        item = Reserva.objects.get(pk=reserva.pk).itens.get()
        self.assertIsNone(item.entrada)
        self.assertIsNone(item.parcelas)


class CorridaEntreVendedoresTests(TransactionTestCase):
    """Duas reservas simultâneas disputando o mesmo lote: só uma ganha."""

    def test_so_uma_reserva_leva_o_lote(self):
        v1, v2 = _usuario("corrida1"), _usuario("corrida2")
        mapa = Mapa.objects.create(nome="Corrida")
        disputado = _lote(mapa, "L1")
        extra1, extra2 = _lote(mapa, "L2"), _lote(mapa, "L3")

        barreira = threading.Barrier(2)
        resultados = {}

        def reservar(user, lotes):
            try:
                barreira.wait()
                resultados[user.pk] = services.criar_reserva(
                    Solicitante(user.pk, Papel.VENDEDOR), [l.pk for l in lotes], CLIENTE
                )
            except Conflito as e:
                resultados[user.pk] = e
            finally:
                connection.close()

        threads = [
            threading.Thread(target=reservar, args=(v1, [extra1, disputado])),
            threading.Thread(target=reservar, args=(v2, [disputado, extra2])),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        vencedoras = [r for r in resultados.values() if isinstance(r, Reserva)]
        perdedoras = [r for r in resultados.values() if isinstance(r, Conflito)]
        self.assertEqual(len(vencedoras), 1)
        self.assertEqual(len(perdedoras), 1)
        self.assertEqual(perdedoras[0].lotes, [disputado.pk])

        disputado.refresh_from_db()
        self.assertEqual(disputado.status, Lote.Status.RESERVADO)
        self.assertEqual(disputado.reserva_id, vencedoras[0].pk)
        self.assertEqual(Reserva.objects.count(), 1)
        # o lote extra da perdedora continua livre
        livres = Lote.objects.filter(status=Lote.Status.DISPONIVEL).count()
        self.assertEqual(livres, 1)
