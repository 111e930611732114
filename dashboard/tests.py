# dashboard/tests.py
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from cadastros.models import Lote, Mapa, Quadra
from usuarios.models import Papel, Perfil
from usuarios.permissoes import Solicitante
from vendas import services as vendas

User = get_user_model()


class PollingTests(TestCase):
    def setUp(self):
        self.vendedor = User.objects.create_user(username="vendedor", password="x")
        Perfil.objects.create(usuario=self.vendedor, papel=Papel.VENDEDOR)
        self.mapa = Mapa.objects.create(nome="Jardim")
        self.quadra = Quadra.objects.create(mapa=self.mapa, nome="A")
        self.l1 = Lote.objects.create(
            mapa=self.mapa, quadra=self.quadra, numero="1", area_m2=Decimal("200"), preco=Decimal("50000")
        )
        self.l2 = Lote.objects.create(mapa=self.mapa, numero="2", area_m2=Decimal("250"), preco=Decimal("60000"))
        self.client.force_login(self.vendedor)

    def _get(self, nome, *args, **params):
        resp = self.client.get(reverse(f"dashboard:{nome}", args=args), params)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp["Cache-Control"], "no-store")
        corpo = resp.json()
        self.assertEqual(corpo["intervalo_polling"], settings.LOTESYS_POLLING_SEGUNDOS)
        self.assertIn("gerado_em", corpo)
        return corpo["dados"]

    def test_mapa_completo(self):
        dados = self._get("mapa_completo", self.mapa.pk)
        self.assertEqual(dados["mapa"]["nome"], "Jardim")
        self.assertEqual([q["nome"] for q in dados["quadras"]], ["A"])
        self.assertEqual(len(dados["lotes"]), 2)
        self.assertEqual(dados["estatisticas"]["available"], 2)

    def test_reflete_reserva_no_proximo_poll(self):
        antes = {l["id"]: l["status"] for l in self._get("lotes", self.mapa.pk)}
        self.assertEqual(antes[self.l1.pk], "DISP")

        vendas.criar_reserva(
            Solicitante(self.vendedor.pk, Papel.VENDEDOR),
            [self.l1.pk],
            {"nome": "Ana", "email": "ana@example.com", "telefone": "94999990000", "cpf": "12345678909"},
        )

        depois = {l["id"]: l["status"] for l in self._get("lotes", self.mapa.pk)}
        self.assertEqual(depois[self.l1.pk], "RESV")
        self.assertEqual(self._get("estatisticas", self.mapa.pk)["reserved"], 1)
        self.assertEqual(self._get("lote_disponivel", self.l1.pk), {"valid": False})
        self.assertEqual(self._get("lote_disponivel", self.l2.pk), {"valid": True})

    def test_filtro_por_quadra(self):
        dados = self._get("lotes", self.mapa.pk, quadra=self.quadra.pk)
        self.assertEqual([l["numero"] for l in dados], ["1"])
        self.assertEqual(dados[0]["quadra_nome"], "A")
        self.assertEqual(dados[0]["preco_m2"], "250.00")

    def test_quadras_e_mapas(self):
        self.assertEqual([m["id"] for m in self._get("mapas")], [self.mapa.pk])
        self.assertEqual([q["id"] for q in self._get("quadras", self.mapa.pk)], [self.quadra.pk])

    def test_mapa_inexistente(self):
        resp = self.client.get(reverse("dashboard:mapa_completo", args=[999999]))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["codigo"], "nao_encontrado")

    def test_sem_login(self):
        self.client.logout()
        resp = self.client.get(reverse("dashboard:mapas"))
        self.assertEqual(resp.status_code, 401)
