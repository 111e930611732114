# dashboard/urls.py
from django.urls import path
from . import views

app_name = "dashboard"

urlpatterns = [
    path("mapas/", views.mapas, name="mapas"),
    path("mapas/<int:pk>/", views.mapa_completo, name="mapa_completo"),
    path("mapas/<int:pk>/quadras/", views.quadras, name="quadras"),
    path("mapas/<int:pk>/lotes/", views.lotes, name="lotes"),
    path("mapas/<int:pk>/estatisticas/", views.estatisticas, name="estatisticas"),
    path("lotes/<int:pk>/disponivel/", views.lote_disponivel, name="lote_disponivel"),
]
