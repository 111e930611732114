# vendas/http.py
from __future__ import annotations

import json
import logging
from functools import wraps

from django.http import JsonResponse

from usuarios.permissoes import solicitante_de

from .exceptions import DadosInvalidos, ReservaError

logger = logging.getLogger(__name__)


def _corpo_json(request) -> dict:
    if not request.body:
        return {}
    try:
        dados = json.loads(request.body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise DadosInvalidos("Corpo da requisição não é JSON válido")
    if not isinstance(dados, dict):
        raise DadosInvalidos("Corpo da requisição deve ser um objeto JSON")
    return dados


def api_view(*metodos: str):
    """
    Envolve uma view JSON:
      - 401 se não autenticado; 405 se o método não for aceito
      - request.solicitante = (user_id, papel); request.dados = corpo JSON
      - a view devolve o payload (dict/list) ou (payload, status)
      - ReservaError vira JSON com o status HTTP da classe;
        qualquer outra falha vira 500 genérico (logado com traceback)
    GETs saem com Cache-Control: no-store (clientes re-consultam por polling).
    """
    def decorator(view):
        @wraps(view)
        def _wrapped(request, *args, **kwargs):
            if request.method not in metodos:
                resp = JsonResponse({"erro": "Método não permitido", "codigo": "metodo_invalido"}, status=405)
                resp["Allow"] = ", ".join(metodos)
                return resp
            if not request.user.is_authenticated:
                return JsonResponse({"erro": "Autenticação necessária", "codigo": "nao_autenticado"}, status=401)

            try:
                request.solicitante = solicitante_de(request.user)
                request.dados = _corpo_json(request) if request.method != "GET" else {}
                resultado = view(request, *args, **kwargs)
            except ReservaError as e:
                return JsonResponse(e.as_dict(), status=e.status_http)
            except Exception:
                logger.exception(f"Erro inesperado em {request.method} {request.path}")
                return JsonResponse({"erro": "Erro interno", "codigo": "erro_interno"}, status=500)

            status = 200
            if isinstance(resultado, tuple):
                resultado, status = resultado
            resp = JsonResponse(resultado, status=status, safe=False)
            if request.method == "GET":
                resp["Cache-Control"] = "no-store"
            return resp
        return _wrapped
    return decorator
