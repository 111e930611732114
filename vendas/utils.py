# vendas/utils.py
"""
Cálculo das condições de cada lote de uma reserva.

Funções puras: não tocam no banco e, para as mesmas entradas, devolvem
sempre o mesmo resultado.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import NamedTuple, Optional

from django.db import models

from .exceptions import DadosInvalidos

DEC_0 = Decimal("0.00")


class FormaPagamento(models.TextChoices):
    PIX = "PIX", "Pix"
    DINHEIRO = "DINHEIRO", "Dinheiro"
    CARTAO = "CARTAO", "Cartão"
    CARNE = "CARNE", "Carnê"
    FINANCIAMENTO = "FINANCIAMENTO", "Financiamento"
    OUTRO = "OUTRO", "Outro"


# forma -> (aceita entrada, aceita parcelas)
# Pix e dinheiro são pagamento único: entrada/parcelas não fazem sentido.
REGRAS_PAGAMENTO = {
    "": (True, True),  # ainda não informada
    FormaPagamento.PIX: (False, False),
    FormaPagamento.DINHEIRO: (False, False),
    FormaPagamento.CARTAO: (True, True),
    FormaPagamento.CARNE: (True, True),
    FormaPagamento.FINANCIAMENTO: (True, True),
    FormaPagamento.OUTRO: (True, False),
}


class CondicoesLote(NamedTuple):
    preco_acordado: Decimal
    entrada: Optional[Decimal]
    parcelas: Optional[int]
    preco_m2_acordado: Decimal
    saldo: Decimal
    valor_parcela: Optional[Decimal]


def _round2(v: Decimal) -> Decimal:
    return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _decimal(valor, campo: str) -> Optional[Decimal]:
    if valor is None or valor == "":
        return None
    try:
        v = Decimal(str(valor))
    except (InvalidOperation, ValueError):
        raise DadosInvalidos(f"Valor inválido para {campo}", campos={campo: [str(valor)]})
    if not v.is_finite():
        raise DadosInvalidos(f"Valor inválido para {campo}", campos={campo: [str(valor)]})
    return v


def regra_da_forma(forma_pagamento: Optional[str]) -> tuple[bool, bool]:
    forma = forma_pagamento or ""
    if forma not in REGRAS_PAGAMENTO:
        raise DadosInvalidos(
            f"Forma de pagamento desconhecida: {forma}",
            campos={"forma_pagamento": [forma]},
        )
    return REGRAS_PAGAMENTO[forma]


def dividir_em_parcelas(total: Decimal, n: int) -> list[Decimal]:
    """
    Divide 'total' em n partes quase iguais (2 casas),
    ajustando a última para fechar exato.
    """
    if n <= 0:
        return []
    base = (total / Decimal(n)).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    vals = [base] * n
    diff = total - sum(vals)
    vals[-1] = _round2(vals[-1] + diff)
    return vals


def calcular_condicoes(
    preco_base,
    area_m2,
    forma_pagamento: Optional[str],
    preco_acordado=None,
    entrada=None,
    parcelas=None,
) -> CondicoesLote:
    """
    Condições persistidas de um lote na reserva:
      - preço acordado: o negociado, ou o preço de tabela do lote
      - entrada/parcelas: só se a forma de pagamento aceitar; senão ficam None
      - saldo = preço acordado - entrada; valor_parcela = saldo / parcelas
    """
    aceita_entrada, aceita_parcelas = regra_da_forma(forma_pagamento)

    preco = _decimal(preco_acordado, "preco_acordado")
    if preco is None:
        preco = _decimal(preco_base, "preco")
    if preco is None or preco <= 0:
        raise DadosInvalidos("Preço acordado deve ser maior que zero", campos={"preco_acordado": [str(preco)]})
    preco = _round2(preco)

    ent = _decimal(entrada, "entrada") if aceita_entrada else None
    if ent is not None:
        if ent < 0:
            raise DadosInvalidos("Entrada não pode ser negativa", campos={"entrada": [str(ent)]})
        if ent > preco:
            raise DadosInvalidos("Entrada maior que o preço acordado", campos={"entrada": [str(ent)]})
        ent = _round2(ent)

    qtd = None
    if aceita_parcelas and parcelas not in (None, ""):
        try:
            qtd = int(parcelas)
        except (TypeError, ValueError):
            raise DadosInvalidos("Quantidade de parcelas inválida", campos={"parcelas": [str(parcelas)]})
        if qtd < 1:
            raise DadosInvalidos("Quantidade de parcelas deve ser ao menos 1", campos={"parcelas": [str(qtd)]})

    area = _decimal(area_m2, "area_m2")
    preco_m2 = _round2(preco / area) if area and area > 0 else DEC_0

    saldo = preco - (ent or DEC_0)
    valor_parcela = dividir_em_parcelas(saldo, qtd)[0] if qtd else None

    return CondicoesLote(
        preco_acordado=preco,
        entrada=ent,
        parcelas=qtd,
        preco_m2_acordado=preco_m2,
        saldo=saldo,
        valor_parcela=valor_parcela,
    )
