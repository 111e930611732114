# vendas/forms.py
import re

from django import forms

from .utils import FormaPagamento


def _digitos(valor: str) -> str:
    return re.sub(r"\D", "", valor or "")


class ContatoForm(forms.Form):
    """
    Nome/email/telefone/CPF de uma das partes da reserva.
    Telefone e CPF são guardados só com dígitos.
    """
    nome = forms.CharField(max_length=150)
    email = forms.EmailField()
    telefone = forms.CharField(max_length=20)
    cpf = forms.CharField(max_length=20)

    def clean_telefone(self):
        return _digitos(self.cleaned_data.get("telefone"))

    def clean_cpf(self):
        cpf = _digitos(self.cleaned_data.get("cpf"))
        if cpf and len(cpf) not in (11, 14):
            raise forms.ValidationError("CPF/CNPJ deve ter 11 ou 14 dígitos")
        return cpf


class ClienteForm(ContatoForm):
    def clean(self):
        dados = super().clean()
        for campo in ("telefone", "cpf"):
            if campo in dados and not dados[campo]:
                self.add_error(campo, "Este campo é obrigatório.")
        return dados


class VendedorForm(ContatoForm):
    """Os dados do vendedor são opcionais; faltando, vêm do usuário logado."""
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            field.required = False


class TermosForm(forms.Form):
    forma_pagamento = forms.ChoiceField(
        choices=[("", "Não informada")] + list(FormaPagamento.choices), required=False
    )
    contrato = forms.CharField(max_length=50, required=False)
    mensagem = forms.CharField(required=False)


def erros_do_form(form: forms.Form, prefixo: str = "") -> dict:
    return {f"{prefixo}{campo}": [str(e) for e in erros] for campo, erros in form.errors.items()}
