from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),

    path("cadastros/", include(("cadastros.urls", "cadastros"), namespace="cadastros")),
    path("vendas/", include(("vendas.urls", "vendas"), namespace="vendas")),
    path("painel/", include(("dashboard.urls", "dashboard"), namespace="dashboard")),
]
