# vendas/urls.py
from django.urls import path
from . import views

app_name = "vendas"

urlpatterns = [
    path("reservas/", views.reservas_view, name="reservas"),
    path("reservas/estatisticas/", views.reservas_estatisticas, name="reservas_estatisticas"),
    path("reservas/<int:pk>/", views.reserva_detail, name="reserva_detail"),
    path("reservas/<int:pk>/pagina/", views.reserva_pagina, name="reserva_pagina"),

    # ações (POST)
    path("reservas/<int:pk>/editar/", views.reserva_editar, name="reserva_editar"),
    path("reservas/<int:pk>/aprovar/", views.reserva_aprovar, name="reserva_aprovar"),
    path("reservas/<int:pk>/rejeitar/", views.reserva_rejeitar, name="reserva_rejeitar"),
    path("reservas/<int:pk>/cancelar-venda/", views.reserva_cancelar_venda, name="reserva_cancelar_venda"),
]
