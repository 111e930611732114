# dashboard/views.py
from cadastros import services as inventario
from usuarios.permissoes import exigir
from vendas.http import api_view

from . import leitura


def _catalogo(request):
    exigir(request.solicitante, "ver_catalogo")


@api_view("GET")
def mapas(request):
    _catalogo(request)
    return leitura.envelope(leitura.mapas())


@api_view("GET")
def mapa_completo(request, pk: int):
    """Mapa, quadras, lotes e contagem por status: a tela inteira num GET só."""
    _catalogo(request)
    return leitura.envelope(leitura.mapa_completo(pk))


@api_view("GET")
def quadras(request, pk: int):
    _catalogo(request)
    return leitura.envelope(leitura.quadras(pk))


@api_view("GET")
def lotes(request, pk: int):
    """Lotes do mapa; ?quadra=<id> filtra por quadra."""
    _catalogo(request)
    return leitura.envelope(leitura.lotes(pk, request.GET.get("quadra")))


@api_view("GET")
def estatisticas(request, pk: int):
    _catalogo(request)
    return leitura.envelope(inventario.estatisticas_lotes(pk))


@api_view("GET")
def lote_disponivel(request, pk: int):
    _catalogo(request)
    return leitura.envelope({"valid": inventario.lote_disponivel(pk)})
