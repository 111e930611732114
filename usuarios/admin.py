from django.contrib import admin
from .models import Perfil

@admin.register(Perfil)
class PerfilAdmin(admin.ModelAdmin):
    list_display = ('usuario','papel','cpf','telefone','creci')
    list_filter = ('papel',)
    search_fields = ('usuario__username','usuario__email','cpf')
