import base64

import pytest

from logic.modelos import Anotacion, EstadoTicket, Ticket
from logic.tickets import ArchivoTicket


class AnotadorFalso:
    """Responde segun el contenido del archivo. Una Exception en `respuestas` se lanza."""

    def __init__(self, respuestas=None, por_defecto=None):
        self.respuestas = respuestas or {}
        self.por_defecto = por_defecto or Anotacion(importe=10.0, fecha="2025-01-10", comercio="Bar")
        self.llamadas = []

    def analizar(self, payload, tipo_mime):
        contenido = base64.b64decode(payload)
        self.llamadas.append((contenido, tipo_mime))
        r = self.respuestas.get(contenido, self.por_defecto)
        if isinstance(r, Exception):
            raise r
        return r


class EmparejadorFalso:
    def __init__(self, respuesta=None):
        self.respuesta = respuesta if respuesta is not None else {"matches": []}
        self.llamadas = []

    def emparejar(self, movimientos, tickets):
        self.llamadas.append((movimientos, tickets))
        if isinstance(self.respuesta, Exception):
            raise self.respuesta
        return self.respuesta


def archivo(nombre, contenido=None, tipo="image/png"):
    return ArchivoTicket(nombre, contenido if contenido is not None else nombre.encode(), tipo)


def ticket_hecho(nombre, **anotacion):
    return Ticket(
        nombre=nombre,
        tipo_mime="image/png",
        contenido=nombre.encode(),
        estado=EstadoTicket.HECHO,
        anotacion=Anotacion(**anotacion),
    )


@pytest.fixture
def anotador():
    return AnotadorFalso()


@pytest.fixture
def emparejador():
    return EmparejadorFalso()
