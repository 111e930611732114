# vendas/views.py
from django.conf import settings

from dashboard.leitura import envelope, reserva_dict, reservas
from . import services
from .http import api_view


@api_view("GET", "POST")
def reservas_view(request):
    """
    GET: reservas visíveis ao usuário, com filtros opcionais
      - ?status=PEND|CONC|CANC|all
      - ?q=texto (cliente/lote)
      - ?mapa=<id>
    POST: cria a reserva
      {"lote_ids": [..], "cliente": {..}, "vendedor": {..},
       "forma_pagamento": .., "contrato": .., "mensagem": ..,
       "lotes": {"<lote_id>": {"preco_acordado": .., "entrada": .., "parcelas": ..}}}
    """
    if request.method == "GET":
        return envelope(
            reservas(
                request.solicitante,
                status=request.GET.get("status"),
                busca=request.GET.get("q"),
                mapa_id=request.GET.get("mapa"),
            )
        )

    d = request.dados
    reserva = services.criar_reserva(
        request.solicitante,
        d.get("lote_ids"),
        d.get("cliente"),
        vendedor=d.get("vendedor"),
        termos=d,
    )
    return reserva_dict(reserva), 201


@api_view("GET")
def reserva_detail(request, pk: int):
    return envelope(reserva_dict(services.obter_reserva(request.solicitante, pk)))


@api_view("POST")
def reserva_editar(request, pk: int):
    return reserva_dict(services.editar_reserva(request.solicitante, pk, request.dados))


@api_view("POST")
def reserva_aprovar(request, pk: int):
    return reserva_dict(services.aprovar_reserva(request.solicitante, pk))


@api_view("POST")
def reserva_rejeitar(request, pk: int):
    return reserva_dict(services.rejeitar_reserva(request.solicitante, pk))


@api_view("POST")
def reserva_cancelar_venda(request, pk: int):
    return reserva_dict(services.cancelar_venda(request.solicitante, pk))


@api_view("GET")
def reserva_pagina(request, pk: int):
    try:
        por_pagina = int(request.GET.get("limit") or settings.LOTESYS_POR_PAGINA)
    except ValueError:
        por_pagina = settings.LOTESYS_POR_PAGINA
    return envelope(
        services.pagina_da_reserva(
            request.solicitante, pk, status=request.GET.get("status"), por_pagina=por_pagina
        )
    )


@api_view("GET")
def reservas_estatisticas(request):
    return envelope(services.estatisticas_reservas(request.solicitante))
