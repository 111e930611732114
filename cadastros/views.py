# cadastros/views.py
from dashboard.leitura import lote_dict, mapa_dict, quadra_dict
from vendas.http import api_view

from . import services


# ===== mapas =====
@api_view("POST")
def mapa_criar(request):
    return mapa_dict(services.criar_mapa(request.solicitante, request.dados)), 201


@api_view("POST")
def mapa_editar(request, pk: int):
    return mapa_dict(services.atualizar_mapa(request.solicitante, pk, request.dados))


@api_view("POST")
def mapa_excluir(request, pk: int):
    """Recusado enquanto houver lote reservado/vendido no mapa."""
    services.excluir_mapa(request.solicitante, pk)
    return {"ok": True}


# ===== quadras =====
@api_view("POST")
def quadra_criar(request):
    return quadra_dict(services.criar_quadra(request.solicitante, request.dados)), 201


@api_view("POST")
def quadra_editar(request, pk: int):
    return quadra_dict(services.atualizar_quadra(request.solicitante, pk, request.dados))


@api_view("POST")
def quadra_excluir(request, pk: int):
    services.excluir_quadra(request.solicitante, pk)
    return {"ok": True}


# ===== lotes =====
@api_view("POST")
def lote_criar(request):
    return lote_dict(services.criar_lote(request.solicitante, request.dados)), 201


@api_view("POST")
def lote_editar(request, pk: int):
    return lote_dict(services.atualizar_lote(request.solicitante, pk, request.dados))


@api_view("POST")
def lote_renomear(request, pk: int):
    return lote_dict(services.renomear_lote(request.solicitante, pk, request.dados.get("numero")))


@api_view("POST")
def lote_bloqueio(request, pk: int):
    """{"bloqueado": true|false}"""
    bloqueado = request.dados.get("bloqueado", True)
    if not isinstance(bloqueado, bool):
        bloqueado = str(bloqueado).lower() in ("1", "true", "sim")
    return lote_dict(services.definir_bloqueio(request.solicitante, pk, bloqueado))


@api_view("POST")
def lote_excluir(request, pk: int):
    services.excluir_lote(request.solicitante, pk)
    return {"ok": True}
