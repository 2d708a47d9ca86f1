"""Contratos de los servicios externos: anotador de tickets y emparejador.

Ambos viven fuera de este nucleo (ver infra.servicios para los clientes HTTP);
aqui solo se definen las interfaces y la lectura del formato de intercambio.
"""
from __future__ import annotations

import math
from typing import Any, Protocol

from logic.lectura import parsear_importe
from logic.modelos import CATEGORIAS, Anotacion


class Anotador(Protocol):
    def analizar(self, payload: str, tipo_mime: str) -> Anotacion:
        """Extrae los datos de un ticket. `payload` va en base64.

        Debe lanzar TransporteError si el servicio no responde o la respuesta no se entiende.
        """
        ...


class Emparejador(Protocol):
    def emparejar(self, movimientos: list[dict], tickets: list[dict]) -> dict:
        """Devuelve la respuesta cruda del emparejador (matches, sin ticket, resumen)."""
        ...


def _texto(valor: Any) -> str | None:
    if valor is None:
        return None
    texto = str(valor).strip()
    return texto or None


def _confianza(valor: Any) -> int | None:
    try:
        numero = float(valor)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numero):
        return None
    return max(0, min(100, int(round(numero))))


def anotacion_desde_dict(data: dict) -> Anotacion:
    """Interpreta la respuesta del anotador ({importe, fecha, comercio, concepto, tipo, confianza} o {error})."""
    error = _texto(data.get("error"))
    if error:
        return Anotacion(error=error)

    categoria = _texto(data.get("tipo"))
    if categoria is not None:
        categoria = categoria.lower()
        if categoria not in CATEGORIAS:
            categoria = "otro"

    return Anotacion(
        importe=parsear_importe(data.get("importe")),
        fecha=_texto(data.get("fecha")),
        comercio=_texto(data.get("comercio")),
        concepto=_texto(data.get("concepto")),
        categoria=categoria,
        confianza=_confianza(data.get("confianza")),
    )
