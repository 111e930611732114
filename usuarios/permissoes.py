# usuarios/permissoes.py
"""
Tabela única de capacidades (papel x operação).

Toda operação que muda estado consulta `exigir` uma única vez, antes de tocar
no banco. Para reservas que o solicitante não enxerga a resposta é
`NaoEncontrado`, igual à de um id inexistente.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

from vendas.exceptions import NaoEncontrado, SemPermissao

from .models import Papel

# escopos
TODOS = "todos"
PROPRIOS = "proprios"
PROPRIOS_PENDENTES = "proprios_pendentes"

_STAFF = {Papel.ADMIN: TODOS, Papel.DEV: TODOS}

CAPACIDADES = {
    # reservas
    "criar_reserva": {Papel.VENDEDOR: PROPRIOS, **_STAFF},
    "ver_reserva": {Papel.VENDEDOR: PROPRIOS, **_STAFF},
    "editar_reserva": {Papel.VENDEDOR: PROPRIOS_PENDENTES, **_STAFF},
    "aprovar_reserva": dict(_STAFF),
    "rejeitar_reserva": dict(_STAFF),
    "cancelar_venda": dict(_STAFF),
    # inventário
    "ver_catalogo": {Papel.VENDEDOR: TODOS, **_STAFF},
    "gerir_catalogo": dict(_STAFF),
    "bloquear_lote": dict(_STAFF),
}


class Solicitante(NamedTuple):
    """Par (usuário, papel) já resolvido pela autenticação."""
    user_id: int
    papel: str

    @property
    def is_staff(self) -> bool:
        return self.papel in (Papel.ADMIN, Papel.DEV)


def papel_de(user) -> str:
    if user.is_superuser:
        return Papel.DEV
    perfil = getattr(user, "perfil", None)
    return perfil.papel if perfil else Papel.VENDEDOR


def solicitante_de(user) -> Solicitante:
    return Solicitante(user.pk, papel_de(user))


def _dono(solicitante: Solicitante, reserva) -> bool:
    return reserva.vendedor_id == solicitante.user_id


def pode_ver(solicitante: Solicitante, reserva) -> bool:
    escopo = CAPACIDADES["ver_reserva"].get(solicitante.papel)
    if escopo == TODOS:
        return True
    return escopo is not None and _dono(solicitante, reserva)


def pode(solicitante: Solicitante, operacao: str, reserva=None) -> bool:
    try:
        exigir(solicitante, operacao, reserva)
    except (SemPermissao, NaoEncontrado):
        return False
    return True


def exigir(solicitante: Solicitante, operacao: str, reserva=None) -> None:
    """
    Levanta SemPermissao se o papel não tem a capacidade (ou o escopo não cobre
    o estado da reserva) e NaoEncontrado se a reserva não é visível.
    """
    if reserva is not None and not pode_ver(solicitante, reserva):
        raise NaoEncontrado("Reserva não encontrada")

    escopo: Optional[str] = CAPACIDADES[operacao].get(solicitante.papel)
    if escopo is None:
        raise SemPermissao(f"Seu perfil não permite '{operacao}'")

    if reserva is None or escopo == TODOS:
        return
    if not _dono(solicitante, reserva):
        raise NaoEncontrado("Reserva não encontrada")
    if escopo == PROPRIOS_PENDENTES and not reserva.esta_pendente:
        raise SemPermissao("Só é possível alterar reservas pendentes")


def reservas_visiveis(solicitante: Solicitante, qs):
    """Filtra um queryset de reservas pelo escopo de leitura do papel."""
    escopo = CAPACIDADES["ver_reserva"].get(solicitante.papel)
    if escopo == TODOS:
        return qs
    if escopo is None:
        return qs.none()
    return qs.do_vendedor(solicitante.user_id)
