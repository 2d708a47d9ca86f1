"""Clientes HTTP de los servicios externos (anotador de tickets y emparejador)."""
from __future__ import annotations

from typing import Any, Optional

import requests

from infra.config import ServiciosConfig, load_config
from infra.logger import get_logger
from logic.colaboradores import anotacion_desde_dict
from logic.errores import TransporteError
from logic.modelos import Anotacion


log = get_logger("servicios")


def _post_json(url: str, payload: dict, timeout: float, session: Optional[requests.Session] = None) -> Any:
    poster = session or requests
    try:
        resp = poster.post(url, json=payload, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        log.warning("Fallo la llamada a %s: %s", url, exc)
        raise TransporteError(f"No se pudo contactar {url}: {exc}") from exc
    try:
        return resp.json()
    except ValueError as exc:
        raise TransporteError(f"Respuesta no JSON de {url}") from exc


class AnotadorHttp:
    """POST {base64Data, mimeType} -> {importe, fecha, comercio, concepto, tipo, confianza} | {error}."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        session: Optional[requests.Session] = None,
        config: Optional[ServiciosConfig] = None,
    ):
        cfg = config or load_config().servicios
        self.url = url or cfg.url_anotador
        self.timeout = timeout if timeout is not None else cfg.timeout_segundos
        self._session = session

    def analizar(self, payload: str, tipo_mime: str) -> Anotacion:
        data = _post_json(self.url, {"base64Data": payload, "mimeType": tipo_mime}, self.timeout, self._session)
        if not isinstance(data, dict):
            raise TransporteError(f"Respuesta inesperada del anotador: {type(data).__name__}")
        return anotacion_desde_dict(data)


class EmparejadorHttp:
    """POST {movements, tickets} -> {matches, movimientos_sin_ticket, tickets_sin_movimiento, resumen}."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        session: Optional[requests.Session] = None,
        config: Optional[ServiciosConfig] = None,
    ):
        cfg = config or load_config().servicios
        self.url = url or cfg.url_emparejador
        self.timeout = timeout if timeout is not None else cfg.timeout_segundos
        self._session = session

    def emparejar(self, movimientos: list[dict], tickets: list[dict]) -> dict:
        return _post_json(self.url, {"movements": movimientos, "tickets": tickets}, self.timeout, self._session)
