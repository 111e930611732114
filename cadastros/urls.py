# cadastros/urls.py
from django.urls import path
from . import views

app_name = "cadastros"

urlpatterns = [
    path("mapas/", views.mapa_criar, name="mapa_criar"),
    path("mapas/<int:pk>/editar/", views.mapa_editar, name="mapa_editar"),
    path("mapas/<int:pk>/excluir/", views.mapa_excluir, name="mapa_excluir"),

    path("quadras/", views.quadra_criar, name="quadra_criar"),
    path("quadras/<int:pk>/editar/", views.quadra_editar, name="quadra_editar"),
    path("quadras/<int:pk>/excluir/", views.quadra_excluir, name="quadra_excluir"),

    path("lotes/", views.lote_criar, name="lote_criar"),
    path("lotes/<int:pk>/editar/", views.lote_editar, name="lote_editar"),
    path("lotes/<int:pk>/renomear/", views.lote_renomear, name="lote_renomear"),
    path("lotes/<int:pk>/bloqueio/", views.lote_bloqueio, name="lote_bloqueio"),
    path("lotes/<int:pk>/excluir/", views.lote_excluir, name="lote_excluir"),
]
