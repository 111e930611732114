# dashboard/leitura.py
"""
Modelo de leitura para clientes que fazem polling.

Tudo aqui só lê: pode ser chamado a qualquer momento e quantas vezes o
cliente quiser. O servidor não empurra atualizações nem guarda estado por
cliente; cada resposta informa quando foi gerada e de quanto em quanto tempo
o cliente deve re-consultar (o atraso máximo que a tela pode ter).
"""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.utils import timezone

from cadastros import services as inventario
from cadastros.models import Lote, Mapa, Quadra
from vendas import services as vendas
from vendas.models import Reserva, ReservaLote


def _dec(v):
    return str(v) if isinstance(v, Decimal) else v


def _iso(dt):
    return dt.isoformat() if dt else None


def envelope(dados) -> dict:
    return {
        "dados": dados,
        "gerado_em": timezone.now().isoformat(),
        "intervalo_polling": settings.LOTESYS_POLLING_SEGUNDOS,
    }


# ===================== conversões =====================

def mapa_dict(m: Mapa) -> dict:
    return {
        "id": m.pk,
        "nome": m.nome,
        "descricao": m.descricao,
        "imagem_url": m.imagem_url,
        "tipo_imagem": m.tipo_imagem,
        "largura": m.largura,
        "altura": m.altura,
        "criado_em": _iso(m.criado_em),
        "atualizado_em": _iso(m.atualizado_em),
    }


def quadra_dict(q: Quadra) -> dict:
    return {
        "id": q.pk,
        "mapa_id": q.mapa_id,
        "nome": q.nome,
        "descricao": q.descricao,
        "atualizado_em": _iso(q.atualizado_em),
    }


def lote_dict(l: Lote) -> dict:
    return {
        "id": l.pk,
        "mapa_id": l.mapa_id,
        "quadra_id": l.quadra_id,
        "quadra_nome": l.quadra.nome if l.quadra_id else None,
        "numero": l.numero,
        "status": l.status,
        "status_label": l.get_status_display(),
        "area_m2": _dec(l.area_m2),
        "preco": _dec(l.preco),
        "preco_m2": _dec(l.preco_m2),
        "descricao": l.descricao,
        "caracteristicas": l.caracteristicas or [],
        "area": l.area,
        "atualizado_em": _iso(l.atualizado_em),
    }


def item_dict(i: ReservaLote) -> dict:
    return {
        "lote_id": i.lote_id,
        "numero_lote": i.numero_lote,
        "mapa_id": i.lote.mapa_id if i.lote else None,
        "preco_tabela": _dec(i.lote.preco) if i.lote else None,
        "preco_acordado": _dec(i.preco_acordado),
        "entrada": _dec(i.entrada),
        "parcelas": i.parcelas,
        "valor_parcela": _dec(i.valor_parcela),
    }


def reserva_dict(r: Reserva) -> dict:
    return {
        "id": r.pk,
        "status": r.status,
        "status_label": r.get_status_display(),
        "lotes": [item_dict(i) for i in r.itens.all()],
        "valor_total": _dec(r.valor_total),
        "cliente": {
            "nome": r.cliente_nome,
            "email": r.cliente_email,
            "telefone": r.cliente_telefone,
            "cpf": r.cliente_cpf,
        },
        "vendedor": {
            "id": r.vendedor_id,
            "nome": r.vendedor_nome,
            "email": r.vendedor_email,
            "telefone": r.vendedor_telefone,
            "cpf": r.vendedor_cpf,
        },
        "forma_pagamento": r.forma_pagamento or None,
        "contrato": r.contrato,
        "mensagem": r.mensagem,
        "criado_em": _iso(r.criado_em),
        "atualizado_em": _iso(r.atualizado_em),
        "concluida_em": _iso(r.concluida_em),
        "cancelada_em": _iso(r.cancelada_em),
    }


# ===================== consultas =====================

def mapas() -> list[dict]:
    return [mapa_dict(m) for m in Mapa.objects.all()]


def mapa_completo(mapa_id) -> dict:
    """Mapa + quadras + lotes + contagem por status, numa resposta só."""
    mapa = inventario.obter_mapa(mapa_id)
    lotes = inventario.listar_lotes(mapa.pk)
    return {
        "mapa": mapa_dict(mapa),
        "quadras": [quadra_dict(q) for q in mapa.quadras.all()],
        "lotes": [lote_dict(l) for l in lotes],
        "estatisticas": inventario.estatisticas_lotes(mapa_id),
    }


def quadras(mapa_id) -> list[dict]:
    mapa = inventario.obter_mapa(mapa_id)
    return [quadra_dict(q) for q in mapa.quadras.all()]


def lotes(mapa_id, quadra_id=None) -> list[dict]:
    return [lote_dict(l) for l in inventario.listar_lotes(mapa_id, quadra_id)]


def reservas(solicitante, status=None, busca=None, mapa_id=None) -> list[dict]:
    return [reserva_dict(r) for r in vendas.listar_reservas(solicitante, status, busca, mapa_id)]
