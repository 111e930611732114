from django import forms
from django.contrib import admin, messages
from django.http import HttpResponseRedirect

from usuarios.permissoes import solicitante_de
from vendas.exceptions import ReservaError

from . import services
from .models import Mapa, Quadra, Lote


class ServicoNoAdminMixin:
    """
    save_model delega a um serviço. Se o serviço recusar, o admin volta ao
    formulário com a mensagem de erro, sem registrar nem anunciar a alteração.
    """

    def recusar(self, request, obj, erro: ReservaError):
        request._servico_recusou = True
        self.message_user(request, f"{obj}: {erro.mensagem}", level=messages.ERROR)

    def log_change(self, request, obj, message):
        if getattr(request, "_servico_recusou", False):
            return None
        return super().log_change(request, obj, message)

    def response_change(self, request, obj):
        if getattr(request, "_servico_recusou", False):
            return HttpResponseRedirect(request.path)
        return super().response_change(request, obj)


class _ExclusaoProtegidaMixin:
    """Exclusão pelo admin passa pelas mesmas travas da API."""
    excluir = None

    def delete_model(self, request, obj):
        try:
            type(self).excluir(solicitante_de(request.user), obj.pk)
        except ReservaError as e:
            self.message_user(request, f"{obj}: {e.mensagem}", level=messages.ERROR)

    def delete_queryset(self, request, queryset):
        for obj in queryset:
            self.delete_model(request, obj)


@admin.register(Mapa)
class MapaAdmin(_ExclusaoProtegidaMixin, admin.ModelAdmin):
    excluir = services.excluir_mapa
    list_display = ('nome','tipo_imagem','largura','altura','atualizado_em')
    search_fields = ('nome',)


@admin.register(Quadra)
class QuadraAdmin(_ExclusaoProtegidaMixin, admin.ModelAdmin):
    excluir = services.excluir_quadra
    list_display = ('nome','mapa','atualizado_em')
    list_filter = ('mapa',)
    search_fields = ('nome',)


@admin.action(description="Bloquear lotes selecionados")
def bloquear(modeladmin, request, queryset):
    _definir_bloqueio(modeladmin, request, queryset, True)


@admin.action(description="Desbloquear lotes selecionados")
def desbloquear(modeladmin, request, queryset):
    _definir_bloqueio(modeladmin, request, queryset, False)


def _definir_bloqueio(modeladmin, request, queryset, bloqueado):
    solicitante = solicitante_de(request.user)
    for lote in queryset:
        try:
            services.definir_bloqueio(solicitante, lote.pk, bloqueado)
        except ReservaError as e:
            modeladmin.message_user(request, f"{lote}: {e.mensagem}", level=messages.ERROR)


CAMPOS_CATALOGO = ('mapa','quadra','numero','area_m2','preco','descricao','caracteristicas','area')


class LoteAdminForm(forms.ModelForm):
    class Meta:
        model = Lote
        fields = CAMPOS_CATALOGO

    def clean(self):
        dados = super().clean()
        for campo in ('preco', 'area_m2'):
            valor = dados.get(campo)
            if valor is not None and valor <= 0:
                self.add_error(campo, "Deve ser maior que zero.")
        mapa_id = dados['mapa'].pk if dados.get('mapa') else self.instance.mapa_id
        quadra = dados.get('quadra')
        if quadra is not None and mapa_id and quadra.mapa_id != mapa_id:
            self.add_error('quadra', "Quadra não pertence ao mapa do lote.")
        return dados


@admin.register(Lote)
class LoteAdmin(ServicoNoAdminMixin, _ExclusaoProtegidaMixin, admin.ModelAdmin):
    excluir = services.excluir_lote
    form = LoteAdminForm
    list_display = ('mapa','quadra','numero','area_m2','preco','status','reserva')
    list_filter = ('mapa','status')
    search_fields = ('quadra__nome','numero')
    fields = CAMPOS_CATALOGO + ('status','reserva')
    # status e reserva só mudam pelo fluxo de reservas / bloqueio
    readonly_fields = ('status','reserva')
    actions = [bloquear, desbloquear]

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return self.readonly_fields + ('mapa',)
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        """Lote novo nasce DISP; na edição só os campos alterados vão para atualizar_lote."""
        if not change:
            super().save_model(request, obj, form, change)
            return
        dados = {}
        for campo in form.changed_data:
            valor = form.cleaned_data[campo]
            if campo == 'quadra':
                dados['quadra_id'] = valor.pk if valor else None
            else:
                dados[campo] = valor
        if not dados:
            return
        try:
            services.atualizar_lote(solicitante_de(request.user), obj.pk, dados)
        except ReservaError as e:
            self.recusar(request, obj, e)
