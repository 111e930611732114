# cadastros/services.py
"""
Inventário de mapas, quadras e lotes.

O status de um lote só muda por aqui, sempre com UPDATE condicional
(compare-and-set): `reservar_lotes` e `transicionar_lotes` movem um lote de
reserva inteiro ou nada; `trocar_status` cuida do bloqueio administrativo.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.db.models import Count

from usuarios.permissoes import Solicitante, exigir
from vendas.exceptions import Conflito, DadosInvalidos, EstadoInvalido, NaoEncontrado

from .models import Lote, Mapa, Quadra

logger = logging.getLogger(__name__)

Status = Lote.Status


# ===================== helpers =====================

def _positivo(valor, campo: str) -> Decimal:
    try:
        v = Decimal(str(valor))
    except (InvalidOperation, ValueError, TypeError):
        raise DadosInvalidos(f"{campo} inválido", campos={campo: [str(valor)]})
    if not v.is_finite():
        raise DadosInvalidos(f"{campo} inválido", campos={campo: [str(valor)]})
    if v <= 0:
        raise DadosInvalidos(f"{campo} deve ser maior que zero", campos={campo: [str(valor)]})
    return v


def _texto_obrigatorio(valor, campo: str) -> str:
    texto = str(valor).strip() if valor is not None else ""
    if not texto:
        raise DadosInvalidos(f"{campo} é obrigatório", campos={campo: ["obrigatório"]})
    return texto


def _inteiro(valor, campo: str) -> int:
    try:
        v = int(valor or 0)
    except (TypeError, ValueError):
        raise DadosInvalidos(f"{campo} inválido", campos={campo: [str(valor)]})
    if v < 0:
        raise DadosInvalidos(f"{campo} não pode ser negativo", campos={campo: [str(valor)]})
    return v


def normalizar_ids(lote_ids) -> list[int]:
    try:
        ids = [int(i) for i in lote_ids]
    except (TypeError, ValueError):
        raise DadosInvalidos("Identificador de lote inválido", campos={"lote_ids": [str(lote_ids)]})
    if len(set(ids)) != len(ids):
        raise DadosInvalidos("Lote repetido na mesma reserva", campos={"lote_ids": [str(ids)]})
    return ids


def _tipo_imagem(valor) -> str:
    if valor not in Mapa.TipoImagem.values:
        raise DadosInvalidos(
            f"Tipo de imagem desconhecido: {valor}", campos={"tipo_imagem": [str(valor)]}
        )
    return valor


def _validar_area(area):
    """Só confere o formato do polígono; a geometria é do desenho do mapa."""
    if area in (None, ""):
        return None
    pontos = area.get("points") if isinstance(area, dict) else None
    if not isinstance(pontos, list) or not all(
        isinstance(p, dict) and "x" in p and "y" in p for p in pontos
    ):
        raise DadosInvalidos("Área do lote deve ser {'points': [{'x':..,'y':..}, ...]}",
                             campos={"area": ["formato inválido"]})
    return {"points": [{"x": p["x"], "y": p["y"]} for p in pontos]}


def _get(model, pk, nome: str):
    try:
        return model.objects.get(pk=pk)
    except (model.DoesNotExist, ValueError, TypeError):
        raise NaoEncontrado(f"{nome} não encontrado(a)")


def _lotes_ativos(qs) -> list[int]:
    return list(qs.filter(status__in=Lote.STATUS_EM_RESERVA).values_list("id", flat=True))


# ===================== compare-and-set =====================

def reservar_lotes(lote_ids, reserva) -> None:
    """
    DISP -> RESV para todos os lotes, marcando `reserva`; ou nenhum.
    Conflito traz os lotes que não estavam disponíveis (ou não existem).
    Sem nova tentativa: quem chamou escolhe outros lotes.
    """
    ids = normalizar_ids(lote_ids)
    if not ids:
        raise DadosInvalidos("Selecione ao menos um lote", campos={"lote_ids": ["vazio"]})

    with transaction.atomic():
        # trava as linhas em ordem fixa para lotes em comum não darem deadlock
        atuais = dict(
            Lote.objects.select_for_update().filter(pk__in=ids).order_by("pk").values_list("pk", "status")
        )
        indisponiveis = [i for i in ids if atuais.get(i) != Status.DISPONIVEL]
        if not indisponiveis:
            alterados = Lote.objects.filter(pk__in=ids, status=Status.DISPONIVEL).update(
                status=Status.RESERVADO, reserva=reserva
            )
            if alterados != len(ids):
                # outro lote mudou entre a leitura e a escrita (banco sem FOR UPDATE)
                indisponiveis = list(
                    Lote.objects.filter(pk__in=ids).exclude(reserva=reserva).values_list("pk", flat=True)
                ) or ids
        if indisponiveis:
            logger.warning(f"Lotes indisponíveis para a reserva {reserva.pk}: {indisponiveis}")
            raise Conflito("Um ou mais lotes não estão disponíveis", lotes=indisponiveis)

    logger.info(f"Lotes {ids} reservados para a reserva {reserva.pk}")


def transicionar_lotes(reserva, de: str, para: str) -> int:
    """
    Move todos os lotes presos a `reserva` de `de` para `para`, tudo ou nada.
    Ao voltar para DISP a marca da reserva é removida.
    """
    ids = reserva.lote_ids()
    if not ids:
        raise EstadoInvalido("Reserva sem lotes associados", status_atual=reserva.status)

    novos = {"status": para}
    if para == Status.DISPONIVEL:
        novos["reserva"] = None

    with transaction.atomic():
        travados = list(Lote.objects.select_for_update().filter(pk__in=ids).order_by("pk"))
        fora = [l.pk for l in travados if l.status != de or l.reserva_id != reserva.pk]
        fora += [i for i in ids if i not in {l.pk for l in travados}]
        if not fora:
            alterados = Lote.objects.filter(pk__in=ids, status=de, reserva=reserva).update(**novos)
            if alterados != len(ids):
                fora = list(ids)
        if fora:
            logger.error(
                f"Reserva {reserva.pk}: lotes {fora} fora do status {de}; transição para {para} abortada"
            )
            raise EstadoInvalido(
                f"Lotes da reserva não estão em {Status(de).label}", status_atual=reserva.status, lotes=fora
            )

    logger.info(f"Reserva {reserva.pk}: lotes {ids} {de} -> {para}")
    return len(ids)


def trocar_status(lote_id, de: str, para: str) -> bool:
    """CAS de um lote só. Usado apenas no bloqueio administrativo (DISP <-> BLOQ)."""
    permitidos = {(Status.DISPONIVEL, Status.BLOQUEADO), (Status.BLOQUEADO, Status.DISPONIVEL)}
    if (de, para) not in permitidos:
        raise EstadoInvalido(f"Transição {de} -> {para} só acontece via reserva")
    return Lote.objects.filter(pk=lote_id, status=de).update(status=para) == 1


def lote_disponivel(lote_id) -> bool:
    try:
        return Lote.objects.filter(pk=int(lote_id), status=Status.DISPONIVEL).exists()
    except (TypeError, ValueError):
        return False


# ===================== mapas =====================

def criar_mapa(solicitante: Solicitante, dados: dict) -> Mapa:
    exigir(solicitante, "gerir_catalogo")
    mapa = Mapa.objects.create(
        nome=_texto_obrigatorio(dados.get("nome"), "nome"),
        descricao=dados.get("descricao") or "",
        imagem_url=dados.get("imagem_url") or "",
        tipo_imagem=_tipo_imagem(dados.get("tipo_imagem") or Mapa.TipoImagem.IMAGEM),
        largura=_inteiro(dados.get("largura"), "largura"),
        altura=_inteiro(dados.get("altura"), "altura"),
    )
    logger.info(f"Mapa {mapa.pk} criado por {solicitante.user_id}")
    return mapa


def atualizar_mapa(solicitante: Solicitante, mapa_id, dados: dict) -> Mapa:
    exigir(solicitante, "gerir_catalogo")
    mapa = _get(Mapa, mapa_id, "Mapa")
    if "nome" in dados:
        mapa.nome = _texto_obrigatorio(dados["nome"], "nome")
    for campo in ("descricao", "imagem_url"):
        if campo in dados:
            setattr(mapa, campo, dados[campo] or "")
    if "tipo_imagem" in dados:
        mapa.tipo_imagem = _tipo_imagem(dados["tipo_imagem"])
    for campo in ("largura", "altura"):
        if campo in dados:
            setattr(mapa, campo, _inteiro(dados[campo], campo))
    mapa.save()
    return mapa


def excluir_mapa(solicitante: Solicitante, mapa_id) -> None:
    exigir(solicitante, "gerir_catalogo")
    with transaction.atomic():
        mapa = _get(Mapa, mapa_id, "Mapa")
        ativos = _lotes_ativos(Lote.objects.select_for_update().filter(mapa=mapa))
        if ativos:
            raise EstadoInvalido(
                "Mapa possui lotes reservados ou vendidos", status_atual="com_lotes_ativos", lotes=ativos
            )
        mapa.delete()
    logger.info(f"Mapa {mapa_id} excluído por {solicitante.user_id}")


# ===================== quadras =====================

def criar_quadra(solicitante: Solicitante, dados: dict) -> Quadra:
    exigir(solicitante, "gerir_catalogo")
    mapa = _get(Mapa, dados.get("mapa_id"), "Mapa")
    nome = _texto_obrigatorio(dados.get("nome"), "nome")
    if Quadra.objects.filter(mapa=mapa, nome=nome).exists():
        raise Conflito(f"Já existe a quadra {nome} neste mapa")
    return Quadra.objects.create(mapa=mapa, nome=nome, descricao=dados.get("descricao") or "")


def atualizar_quadra(solicitante: Solicitante, quadra_id, dados: dict) -> Quadra:
    exigir(solicitante, "gerir_catalogo")
    quadra = _get(Quadra, quadra_id, "Quadra")
    if "nome" in dados:
        nome = _texto_obrigatorio(dados["nome"], "nome")
        if Quadra.objects.filter(mapa_id=quadra.mapa_id, nome=nome).exclude(pk=quadra.pk).exists():
            raise Conflito(f"Já existe a quadra {nome} neste mapa")
        quadra.nome = nome
    if "descricao" in dados:
        quadra.descricao = dados["descricao"] or ""
    quadra.save()
    return quadra


def excluir_quadra(solicitante: Solicitante, quadra_id) -> None:
    """Apaga a quadra e os lotes dela, desde que nenhum esteja reservado/vendido."""
    exigir(solicitante, "gerir_catalogo")
    with transaction.atomic():
        quadra = _get(Quadra, quadra_id, "Quadra")
        ativos = _lotes_ativos(Lote.objects.select_for_update().filter(quadra=quadra))
        if ativos:
            raise EstadoInvalido(
                "Quadra possui lotes reservados ou vendidos", status_atual="com_lotes_ativos", lotes=ativos
            )
        quadra.delete()
    logger.info(f"Quadra {quadra_id} excluída por {solicitante.user_id}")


# ===================== lotes =====================

def _quadra_do_mapa(quadra_id, mapa_id):
    if quadra_id in (None, ""):
        return None
    quadra = _get(Quadra, quadra_id, "Quadra")
    if quadra.mapa_id != mapa_id:
        raise DadosInvalidos("Quadra não pertence ao mapa do lote", campos={"quadra_id": [str(quadra_id)]})
    return quadra


def criar_lote(solicitante: Solicitante, dados: dict) -> Lote:
    """Cria o lote DISP. Importação em massa chama esta mesma função."""
    exigir(solicitante, "gerir_catalogo")
    mapa = _get(Mapa, dados.get("mapa_id"), "Mapa")
    numero = _texto_obrigatorio(dados.get("numero"), "numero")
    lote = Lote(
        mapa=mapa,
        quadra=_quadra_do_mapa(dados.get("quadra_id"), mapa.pk),
        numero=numero,
        area_m2=_positivo(dados.get("area_m2"), "area_m2"),
        preco=_positivo(dados.get("preco"), "preco"),
        descricao=dados.get("descricao") or "",
        caracteristicas=list(dados.get("caracteristicas") or []),
        area=_validar_area(dados.get("area")),
    )
    try:
        with transaction.atomic():
            if Lote.objects.filter(mapa=mapa, numero=numero).exists():
                raise Conflito(f"Já existe o lote {numero} neste mapa")
            lote.save()
    except IntegrityError:
        raise Conflito(f"Já existe o lote {numero} neste mapa")
    logger.info(f"Lote {lote.pk} ({numero}) criado no mapa {mapa.pk}")
    return lote


def atualizar_lote(solicitante: Solicitante, lote_id, dados: dict) -> Lote:
    """Preço, área, descrição, características, polígono e quadra. Nunca o status."""
    exigir(solicitante, "gerir_catalogo")
    with transaction.atomic():
        lote = _get(Lote, lote_id, "Lote")
        # renomeia antes: renomear_lote devolve a linha travada, que é a que será salva
        if "numero" in dados and dados["numero"] != lote.numero:
            lote = renomear_lote(solicitante, lote.pk, dados["numero"])
        campos = _aplicar_catalogo(lote, dados)
        if campos:
            lote.save(update_fields=campos + ["atualizado_em"])
    return lote


def _aplicar_catalogo(lote: Lote, dados: dict) -> list[str]:
    campos = []
    if "preco" in dados:
        lote.preco = _positivo(dados["preco"], "preco")
        campos.append("preco")
    if "area_m2" in dados:
        lote.area_m2 = _positivo(dados["area_m2"], "area_m2")
        campos.append("area_m2")
    if "descricao" in dados:
        lote.descricao = dados["descricao"] or ""
        campos.append("descricao")
    if "caracteristicas" in dados:
        lote.caracteristicas = list(dados["caracteristicas"] or [])
        campos.append("caracteristicas")
    if "area" in dados:
        lote.area = _validar_area(dados["area"])
        campos.append("area")
    if "quadra_id" in dados:
        lote.quadra = _quadra_do_mapa(dados["quadra_id"], lote.mapa_id)
        campos.append("quadra")
    return campos


def renomear_lote(solicitante: Solicitante, lote_id, novo_numero) -> Lote:
    exigir(solicitante, "gerir_catalogo")
    numero = _texto_obrigatorio(novo_numero, "numero")
    try:
        with transaction.atomic():
            lote = Lote.objects.select_for_update().filter(pk=lote_id).first()
            if lote is None:
                raise NaoEncontrado("Lote não encontrado")
            repetido = Lote.objects.filter(mapa_id=lote.mapa_id, numero=numero).exclude(pk=lote.pk)
            if repetido.exists():
                raise Conflito(
                    f"Já existe o lote {numero} neste mapa", lotes=repetido.values_list("pk", flat=True)
                )
            lote.numero = numero
            lote.save(update_fields=["numero", "atualizado_em"])
    except IntegrityError:
        raise Conflito(f"Já existe o lote {numero} neste mapa")
    logger.info(f"Lote {lote.pk} renomeado para {numero}")
    return lote


def definir_bloqueio(solicitante: Solicitante, lote_id, bloqueado: bool) -> Lote:
    """Bloqueio administrativo, independente de reservas."""
    exigir(solicitante, "bloquear_lote")
    lote = _get(Lote, lote_id, "Lote")
    de, para = (Status.DISPONIVEL, Status.BLOQUEADO) if bloqueado else (Status.BLOQUEADO, Status.DISPONIVEL)
    if lote.status == para:
        return lote
    if not trocar_status(lote.pk, de, para):
        lote.refresh_from_db()
        raise EstadoInvalido(
            f"Lote {lote.numero} está {lote.get_status_display()}", status_atual=lote.status, lotes=[lote.pk]
        )
    lote.refresh_from_db()
    logger.info(f"Lote {lote.pk} {de} -> {para} por {solicitante.user_id}")
    return lote


def excluir_lote(solicitante: Solicitante, lote_id) -> None:
    exigir(solicitante, "gerir_catalogo")
    with transaction.atomic():
        lote = Lote.objects.select_for_update().filter(pk=lote_id).first()
        if lote is None:
            raise NaoEncontrado("Lote não encontrado")
        if lote.em_reserva:
            raise EstadoInvalido(
                f"Lote {lote.numero} está {lote.get_status_display()}", status_atual=lote.status, lotes=[lote.pk]
            )
        lote.delete()
    logger.info(f"Lote {lote_id} excluído por {solicitante.user_id}")


# ===================== leitura =====================

def estatisticas_lotes(mapa_id) -> dict:
    _get(Mapa, mapa_id, "Mapa")
    contagem = dict(
        Lote.objects.filter(mapa_id=mapa_id).order_by().values("status").annotate(n=Count("id"))
        .values_list("status", "n")
    )
    return {
        "available": contagem.get(Status.DISPONIVEL, 0),
        "reserved": contagem.get(Status.RESERVADO, 0),
        "sold": contagem.get(Status.VENDIDO, 0),
        "blocked": contagem.get(Status.BLOQUEADO, 0),
    }


def listar_lotes(mapa_id, quadra_id=None):
    _get(Mapa, mapa_id, "Mapa")
    qs = Lote.objects.select_related("quadra").filter(mapa_id=mapa_id)
    if quadra_id not in (None, ""):
        qs = qs.filter(quadra_id=quadra_id)
    return qs.order_by("quadra__nome", "numero", "id")


def obter_mapa(mapa_id) -> Mapa:
    return _get(Mapa, mapa_id, "Mapa")
