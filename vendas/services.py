# vendas/services.py
"""
Ciclo de vida das reservas.

    criar_reserva      [nenhuma] -> PENDENTE     lotes DISP -> RESV
    aprovar_reserva    PENDENTE  -> CONCLUIDA    lotes RESV -> VEND
    rejeitar_reserva   PENDENTE  -> CANCELADA    lotes RESV -> DISP
    cancelar_venda     CONCLUIDA -> CANCELADA    lotes VEND -> DISP

Cada operação consulta a tabela de permissões uma vez e muda os lotes pelas
primitivas de compare-and-set de `cadastros.services`, na mesma transação da
reserva. Nenhuma operação tenta de novo sozinha.
"""
from __future__ import annotations

import logging
import math
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from cadastros.models import Lote
from cadastros.services import normalizar_ids, reservar_lotes, transicionar_lotes
from usuarios.permissoes import Solicitante, exigir, reservas_visiveis

from .exceptions import DadosInvalidos, EstadoInvalido, NaoEncontrado
from .forms import ClienteForm, TermosForm, VendedorForm, erros_do_form
from .models import Reserva, ReservaLote
from .utils import calcular_condicoes

logger = logging.getLogger(__name__)

Status = Reserva.Status


# ===================== helpers =====================

def _carregar(reserva_id, *, travar: bool = False) -> Reserva:
    qs = Reserva.objects.prefetch_related("itens__lote")
    if travar:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=int(reserva_id))
    except (Reserva.DoesNotExist, TypeError, ValueError):
        raise NaoEncontrado("Reserva não encontrada")


def _objeto(valor, campo: str) -> dict:
    if valor is None:
        return {}
    if not isinstance(valor, dict):
        raise DadosInvalidos(f"'{campo}' deve ser um objeto", campos={campo: ["formato inválido"]})
    return valor


def _validar(form_cls, dados: Optional[dict], prefixo: str) -> dict:
    form = form_cls(data=_objeto(dados, prefixo.rstrip("_") or "termos"))
    if not form.is_valid():
        raise DadosInvalidos("Dados inválidos", campos=erros_do_form(form, prefixo))
    return form.cleaned_data


def _termos_por_lote(termos: dict, permitidos) -> dict[int, dict]:
    """{"<lote_id>": {preco_acordado, entrada, parcelas}} -> {lote_id: {...}}."""
    brutos = termos.get("lotes") or {}
    if not isinstance(brutos, dict):
        raise DadosInvalidos("'lotes' deve mapear id do lote -> condições", campos={"lotes": ["formato inválido"]})
    por_lote = {}
    for chave, valores in brutos.items():
        try:
            lote_id = int(chave)
        except (TypeError, ValueError):
            raise DadosInvalidos("Identificador de lote inválido", campos={"lotes": [str(chave)]})
        if lote_id not in permitidos:
            raise DadosInvalidos(
                f"Lote {lote_id} não faz parte da reserva", campos={"lotes": [str(lote_id)]}
            )
        por_lote[lote_id] = _objeto(valores, f"lotes.{lote_id}")
    return por_lote


def _dados_do_vendedor(solicitante: Solicitante, vendedor: dict) -> dict:
    """Completa o que o vendedor não informou com os dados do usuário logado."""
    user = get_user_model().objects.select_related("perfil").filter(pk=solicitante.user_id).first()
    perfil = getattr(user, "perfil", None) if user else None
    padrao = {
        "nome": (user.get_full_name() or user.get_username()) if user else "",
        "email": user.email if user else "",
        "telefone": perfil.telefone if perfil else "",
        "cpf": perfil.cpf if perfil else "",
    }
    return {campo: vendedor.get(campo) or padrao[campo] for campo in padrao}


def _checar_status(reserva: Reserva, esperado: str, acao: str) -> None:
    if reserva.status != esperado:
        raise EstadoInvalido(
            f"Não é possível {acao}: reserva está {reserva.get_status_display()}",
            status_atual=reserva.status,
        )


# ===================== criação =====================

def criar_reserva(
    solicitante: Solicitante,
    lote_ids,
    cliente: dict,
    vendedor: Optional[dict] = None,
    termos: Optional[dict] = None,
) -> Reserva:
    """
    Reserva os lotes para o cliente. Tudo ou nada: se um lote não estiver
    disponível, nada é gravado e o Conflito diz quais lotes escolher de novo.
    """
    exigir(solicitante, "criar_reserva")
    termos = _objeto(termos, "termos")

    ids = normalizar_ids(lote_ids or [])
    if not ids:
        raise DadosInvalidos("Selecione ao menos um lote", campos={"lote_ids": ["vazio"]})

    c = _validar(ClienteForm, cliente, "cliente_")
    v = _dados_do_vendedor(solicitante, _validar(VendedorForm, vendedor, "vendedor_"))
    t = _validar(TermosForm, termos, "")
    por_lote = _termos_por_lote(termos, set(ids))

    with transaction.atomic():
        reserva = Reserva.objects.create(
            cliente_nome=c["nome"],
            cliente_email=c["email"],
            cliente_telefone=c["telefone"],
            cliente_cpf=c["cpf"],
            vendedor_id=solicitante.user_id,
            vendedor_nome=v["nome"],
            vendedor_email=v["email"],
            vendedor_telefone=v["telefone"],
            vendedor_cpf=v["cpf"],
            forma_pagamento=t["forma_pagamento"],
            contrato=t["contrato"],
            mensagem=t["mensagem"],
            status=Status.PENDENTE,
        )
        reservar_lotes(ids, reserva)

        lotes = Lote.objects.in_bulk(ids)
        itens = []
        for ordem, lote_id in enumerate(ids):
            lote = lotes[lote_id]
            negociado = por_lote.get(lote_id, {})
            cond = calcular_condicoes(
                lote.preco,
                lote.area_m2,
                reserva.forma_pagamento,
                preco_acordado=negociado.get("preco_acordado"),
                entrada=negociado.get("entrada"),
                parcelas=negociado.get("parcelas"),
            )
            itens.append(
                ReservaLote(
                    reserva=reserva,
                    lote=lote,
                    numero_lote=lote.numero,
                    ordem=ordem,
                    preco_acordado=cond.preco_acordado,
                    entrada=cond.entrada,
                    parcelas=cond.parcelas,
                )
            )
        ReservaLote.objects.bulk_create(itens)

    logger.info(f"Reserva {reserva.pk} criada por {solicitante.user_id} com lotes {ids}")
    return _carregar(reserva.pk)


# ===================== transições =====================

def _transicionar(
    solicitante: Solicitante,
    reserva_id,
    *,
    operacao: str,
    acao: str,
    de: str,
    para: str,
    lote_de: str,
    lote_para: str,
    carimbo: str,
) -> Reserva:
    with transaction.atomic():
        reserva = _carregar(reserva_id, travar=True)
        exigir(solicitante, operacao, reserva)
        _checar_status(reserva, de, acao)

        transicionar_lotes(reserva, lote_de, lote_para)

        reserva.status = para
        setattr(reserva, carimbo, timezone.now())
        reserva.save(update_fields=["status", carimbo, "atualizado_em"])

    logger.info(f"Reserva {reserva.pk}: {de} -> {para} ({operacao} por {solicitante.user_id})")
    return _carregar(reserva.pk)


def aprovar_reserva(solicitante: Solicitante, reserva_id) -> Reserva:
    return _transicionar(
        solicitante, reserva_id,
        operacao="aprovar_reserva", acao="aprovar",
        de=Status.PENDENTE, para=Status.CONCLUIDA,
        lote_de=Lote.Status.RESERVADO, lote_para=Lote.Status.VENDIDO,
        carimbo="concluida_em",
    )


def rejeitar_reserva(solicitante: Solicitante, reserva_id) -> Reserva:
    return _transicionar(
        solicitante, reserva_id,
        operacao="rejeitar_reserva", acao="rejeitar",
        de=Status.PENDENTE, para=Status.CANCELADA,
        lote_de=Lote.Status.RESERVADO, lote_para=Lote.Status.DISPONIVEL,
        carimbo="cancelada_em",
    )


def cancelar_venda(solicitante: Solicitante, reserva_id) -> Reserva:
    """Desfaz uma venda aprovada: lotes voltam a ficar disponíveis."""
    reserva = _transicionar(
        solicitante, reserva_id,
        operacao="cancelar_venda", acao="cancelar a venda",
        de=Status.CONCLUIDA, para=Status.CANCELADA,
        lote_de=Lote.Status.VENDIDO, lote_para=Lote.Status.DISPONIVEL,
        carimbo="cancelada_em",
    )
    if reserva.contrato:
        logger.warning(f"Venda {reserva.pk} cancelada com contrato {reserva.contrato} registrado")
    return reserva


# ===================== edição =====================

CAMPOS_CONTATO = ("nome", "email", "telefone", "cpf")


def editar_reserva(solicitante: Solicitante, reserva_id, termos: dict) -> Reserva:
    """
    Altera as condições comerciais. O vendedor só edita as próprias reservas
    pendentes; admin/dev editam em qualquer status. Lotes e status não mudam.
    """
    termos = _objeto(termos, "termos")
    with transaction.atomic():
        reserva = _carregar(reserva_id, travar=True)
        exigir(solicitante, "editar_reserva", reserva)

        for parte, form_cls in (("cliente", ClienteForm), ("vendedor", VendedorForm)):
            atual = {campo: getattr(reserva, f"{parte}_{campo}") for campo in CAMPOS_CONTATO}
            novos = _objeto(termos.get(parte), parte)
            dados = _validar(form_cls, {**atual, **novos}, f"{parte}_")
            for campo in CAMPOS_CONTATO:
                setattr(reserva, f"{parte}_{campo}", dados[campo])

        atual = {
            "forma_pagamento": reserva.forma_pagamento,
            "contrato": reserva.contrato,
            "mensagem": reserva.mensagem,
        }
        novos = {k: termos[k] for k in atual if k in termos}
        t = _validar(TermosForm, {**atual, **novos}, "")
        reserva.forma_pagamento = t["forma_pagamento"]
        reserva.contrato = t["contrato"]
        reserva.mensagem = t["mensagem"]
        reserva.save()

        itens = list(reserva.itens.all())
        por_lote = _termos_por_lote(termos, {item.lote_id for item in itens if item.lote_id})
        for item in itens:
            negociado = por_lote.get(item.lote_id, {})
            cond = calcular_condicoes(
                item.preco_acordado,
                item.lote.area_m2 if item.lote else None,
                reserva.forma_pagamento,
                preco_acordado=negociado.get("preco_acordado", item.preco_acordado),
                entrada=negociado.get("entrada", item.entrada),
                parcelas=negociado.get("parcelas", item.parcelas),
            )
            item.preco_acordado = cond.preco_acordado
            item.entrada = cond.entrada
            item.parcelas = cond.parcelas
        ReservaLote.objects.bulk_update(itens, ["preco_acordado", "entrada", "parcelas"])

    logger.info(f"Reserva {reserva.pk} editada por {solicitante.user_id}")
    return _carregar(reserva.pk)


# ===================== leitura =====================

def obter_reserva(solicitante: Solicitante, reserva_id) -> Reserva:
    reserva = _carregar(reserva_id)
    exigir(solicitante, "ver_reserva", reserva)
    return reserva


def listar_reservas(
    solicitante: Solicitante,
    status: Optional[str] = None,
    busca: Optional[str] = None,
    mapa_id=None,
):
    """
    Reservas visíveis ao solicitante, pendentes primeiro e, dentro da mesma
    prioridade, as mais recentes primeiro. Filtros opcionais:
      - status=PEND|CONC|CANC (ou "all")
      - busca: cliente (nome/email) ou número do lote
      - mapa_id: só reservas com lote naquele mapa
    """
    qs = reservas_visiveis(solicitante, Reserva.objects.all())

    if status and status != "all":
        if status not in Status.values:
            raise DadosInvalidos(f"Status desconhecido: {status}", campos={"status": [status]})
        qs = qs.filter(status=status)
    if busca:
        qs = qs.filter(
            Q(cliente_nome__icontains=busca)
            | Q(cliente_email__icontains=busca)
            | Q(itens__numero_lote__icontains=busca)
        )
    if mapa_id not in (None, ""):
        qs = qs.filter(itens__lote__mapa_id=mapa_id)
    if busca or mapa_id not in (None, ""):
        qs = qs.distinct()

    return qs.ordenadas().prefetch_related("itens__lote__quadra")


def pagina_da_reserva(
    solicitante: Solicitante,
    reserva_id,
    status: Optional[str] = None,
    por_pagina: int = 10,
) -> dict:
    """Em que página (1-based) da listagem filtrada a reserva aparece."""
    reserva = obter_reserva(solicitante, reserva_id)
    if por_pagina < 1:
        raise DadosInvalidos("por_pagina deve ser ao menos 1", campos={"por_pagina": [str(por_pagina)]})
    ids = list(listar_reservas(solicitante, status=status).values_list("id", flat=True))
    if reserva.pk not in ids:
        raise NaoEncontrado("Reserva não aparece com esse filtro")
    posicao = ids.index(reserva.pk) + 1
    return {"pagina": math.ceil(posicao / por_pagina), "posicao": posicao, "por_pagina": por_pagina}


def estatisticas_reservas(solicitante: Solicitante) -> dict:
    contagem = dict(
        reservas_visiveis(solicitante, Reserva.objects.order_by())
        .values("status")
        .annotate(n=Count("id"))
        .values_list("status", "n")
    )
    pendentes = contagem.get(Status.PENDENTE, 0)
    concluidas = contagem.get(Status.CONCLUIDA, 0)
    canceladas = contagem.get(Status.CANCELADA, 0)
    return {
        "pending": pendentes,
        "completed": concluidas,
        "cancelled": canceladas,
        "total": pendentes + concluidas + canceladas,
    }
