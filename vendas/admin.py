# vendas/admin.py
from django.contrib import admin, messages

from cadastros.admin import ServicoNoAdminMixin
from usuarios.permissoes import solicitante_de

from . import services
from .exceptions import ReservaError
from .models import Reserva, ReservaLote


def _aplicar(modeladmin, request, queryset, operacao, rotulo):
    solicitante = solicitante_de(request.user)
    feitas = 0
    for reserva in queryset:
        try:
            operacao(solicitante, reserva.pk)
            feitas += 1
        except ReservaError as e:
            modeladmin.message_user(request, f"Reserva #{reserva.pk}: {e.mensagem}", level=messages.ERROR)
    if feitas:
        modeladmin.message_user(request, f"{feitas} reserva(s) {rotulo}.", level=messages.SUCCESS)


# ===== Ações das reservas =====
@admin.action(description="Aprovar (lotes -> Vendido)")
def aprovar(modeladmin, request, queryset):
    _aplicar(modeladmin, request, queryset, services.aprovar_reserva, "aprovada(s)")


@admin.action(description="Rejeitar (lotes -> Disponível)")
def rejeitar(modeladmin, request, queryset):
    _aplicar(modeladmin, request, queryset, services.rejeitar_reserva, "rejeitada(s)")


@admin.action(description="Cancelar venda (lotes -> Disponível)")
def cancelar_venda(modeladmin, request, queryset):
    _aplicar(modeladmin, request, queryset, services.cancelar_venda, "cancelada(s)")


# ===== Inline dos lotes (somente leitura: o conjunto não muda) =====
class ReservaLoteInline(admin.TabularInline):
    model = ReservaLote
    extra = 0
    can_delete = False
    fields = ("ordem", "lote", "numero_lote", "preco_acordado", "entrada", "parcelas", "valor_parcela")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    @admin.display(description="Valor parcela")
    def valor_parcela(self, obj: ReservaLote):
        return obj.valor_parcela or "—"


# ===== Reserva =====
@admin.register(Reserva)
class ReservaAdmin(ServicoNoAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "cliente_nome",
        "vendedor_nome",
        "forma_pagamento",
        "status",
        "contrato",
        "criado_em",
    )
    search_fields = ("cliente_nome", "cliente_email", "itens__numero_lote")
    list_filter = ("status", "forma_pagamento", "criado_em")
    inlines = [ReservaLoteInline]
    actions = [aprovar, rejeitar, cancelar_venda]

    fieldsets = (
        ("Cliente", {
            "fields": ("cliente_nome", "cliente_email", "cliente_telefone", "cliente_cpf")
        }),
        ("Vendedor", {
            "fields": ("vendedor", "vendedor_nome", "vendedor_email", "vendedor_telefone", "vendedor_cpf")
        }),
        ("Condições", {
            "fields": ("forma_pagamento", "contrato", "mensagem")
        }),
        ("Situação", {
            "fields": ("status", "criado_em", "concluida_em", "cancelada_em")
        }),
    )
    readonly_fields = ("vendedor", "status", "criado_em", "concluida_em", "cancelada_em")

    def has_add_permission(self, request):
        # reservas nascem só pelo fluxo de criação (trava de lotes)
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        """Edição pelo admin recalcula as condições como a API."""
        termos = {"cliente": {}, "vendedor": {}}
        for campo in form.changed_data:
            parte, _, nome = campo.partition("_")
            if parte in termos and nome in services.CAMPOS_CONTATO:
                termos[parte][nome] = form.cleaned_data[campo]
            else:
                termos[campo] = form.cleaned_data[campo]
        try:
            services.editar_reserva(solicitante_de(request.user), obj.pk, termos)
        except ReservaError as e:
            self.recusar(request, obj, e)
