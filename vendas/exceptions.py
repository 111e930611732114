# vendas/exceptions.py
from __future__ import annotations

from typing import Iterable, Optional


class ReservaError(Exception):
    """
    Erro de negócio do inventário/reservas.
    Sempre tipado; as views convertem em JSON com o status HTTP de cada classe.
    """
    codigo = "erro"
    status_http = 400

    def __init__(self, mensagem: str, *, detalhes: Optional[dict] = None):
        super().__init__(mensagem)
        self.mensagem = mensagem
        self.detalhes = detalhes or {}

    def as_dict(self) -> dict:
        return {"erro": self.mensagem, "codigo": self.codigo, "detalhes": self.detalhes}


class DadosInvalidos(ReservaError):
    """Campo obrigatório ausente, lista de lotes vazia, preço/área não positivos..."""
    codigo = "dados_invalidos"
    status_http = 400

    def __init__(self, mensagem: str, *, campos: Optional[dict] = None):
        super().__init__(mensagem, detalhes={"campos": campos} if campos else None)
        self.campos = campos or {}


class Conflito(ReservaError):
    """Lote(s) indisponível(is) ou número de lote repetido no mapa."""
    codigo = "conflito"
    status_http = 409

    def __init__(self, mensagem: str, *, lotes: Iterable = ()):
        lotes = sorted(lotes)
        super().__init__(mensagem, detalhes={"lotes": lotes} if lotes else None)
        self.lotes = lotes


class SemPermissao(ReservaError):
    codigo = "sem_permissao"
    status_http = 403


class EstadoInvalido(ReservaError):
    """Operação não cabe no estado atual (ex.: aprovar reserva já concluída)."""
    codigo = "estado_invalido"
    status_http = 409

    def __init__(self, mensagem: str, *, status_atual: Optional[str] = None, lotes: Iterable = ()):
        lotes = sorted(lotes)
        detalhes = {}
        if status_atual:
            detalhes["status_atual"] = status_atual
        if lotes:
            detalhes["lotes"] = lotes
        super().__init__(mensagem, detalhes=detalhes)
        self.status_atual = status_atual
        self.lotes = lotes


class NaoEncontrado(ReservaError):
    codigo = "nao_encontrado"
    status_http = 404
