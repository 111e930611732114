# vendas/models.py
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Case, IntegerField, Value, When

from .utils import FormaPagamento, dividir_em_parcelas

DEC_0 = Decimal("0.00")


class ReservaQuerySet(models.QuerySet):
    def ordenadas(self):
        """Pendentes primeiro; dentro da mesma prioridade, as mais novas primeiro."""
        return self.annotate(
            _prioridade=Case(
                When(status=Reserva.Status.PENDENTE, then=Value(0)),
                default=Value(1),
                output_field=IntegerField(),
            )
        ).order_by("_prioridade", "-criado_em", "-id")

    def do_vendedor(self, user_id: int):
        return self.filter(vendedor_id=user_id)


class Reserva(models.Model):
    class Status(models.TextChoices):
        PENDENTE = "PEND", "Pendente"
        CONCLUIDA = "CONC", "Concluída"
        CANCELADA = "CANC", "Cancelada"

    # cliente
    cliente_nome = models.CharField(max_length=150)
    cliente_email = models.EmailField()
    cliente_telefone = models.CharField(max_length=20)
    cliente_cpf = models.CharField(max_length=14)

    # vendedor (quem criou + dados de contato informados)
    vendedor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="reservas"
    )
    vendedor_nome = models.CharField(max_length=150, blank=True)
    vendedor_email = models.EmailField(blank=True)
    vendedor_telefone = models.CharField(max_length=20, blank=True)
    vendedor_cpf = models.CharField(max_length=14, blank=True)

    forma_pagamento = models.CharField(
        max_length=15, choices=FormaPagamento.choices, blank=True, default=""
    )
    contrato = models.CharField(max_length=50, blank=True)
    mensagem = models.TextField(blank=True)

    status = models.CharField(max_length=4, choices=Status.choices, default=Status.PENDENTE)

    criado_em = models.DateTimeField(auto_now_add=True)
    atualizado_em = models.DateTimeField(auto_now=True)
    concluida_em = models.DateTimeField(null=True, blank=True)
    cancelada_em = models.DateTimeField(null=True, blank=True)

    objects = ReservaQuerySet.as_manager()

    class Meta:
        ordering = ["-criado_em", "-id"]
        indexes = [
            models.Index(fields=["status"], name="reserva_status_idx"),
            models.Index(fields=["vendedor", "status"], name="reserva_vendedor_status_idx"),
        ]

    def __str__(self):
        return f"Reserva #{self.pk} - {self.cliente_nome}"

    @property
    def esta_pendente(self) -> bool:
        return self.status == self.Status.PENDENTE

    @property
    def valor_total(self) -> Decimal:
        return sum((item.preco_acordado for item in self.itens.all()), DEC_0)

    def lote_ids(self) -> list[int]:
        return [item.lote_id for item in self.itens.all() if item.lote_id]


class ReservaLote(models.Model):
    """Lote de uma reserva com as condições negociadas só para ele."""
    reserva = models.ForeignKey(Reserva, on_delete=models.CASCADE, related_name="itens")
    # SET_NULL: a reserva continua legível (pelo número) se o lote for apagado depois
    lote = models.ForeignKey(
        "cadastros.Lote", on_delete=models.SET_NULL, null=True, related_name="itens_reserva"
    )
    numero_lote = models.CharField(max_length=20)
    ordem = models.PositiveIntegerField(default=0)

    preco_acordado = models.DecimalField(max_digits=12, decimal_places=2)
    entrada = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    parcelas = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["ordem", "id"]
        constraints = [
            models.UniqueConstraint(fields=["reserva", "lote"], name="lote_unico_na_reserva"),
        ]

    def __str__(self):
        return f"Lote {self.numero_lote} da reserva {self.reserva_id}"

    @property
    def saldo(self) -> Decimal:
        """Preço acordado menos a entrada (nunca negativo)."""
        restante = (self.preco_acordado or DEC_0) - (self.entrada or DEC_0)
        return restante if restante > 0 else DEC_0

    @property
    def valor_parcela(self) -> Decimal | None:
        if not self.parcelas:
            return None
        return dividir_em_parcelas(self.saldo, self.parcelas)[0]
