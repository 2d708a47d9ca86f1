from __future__ import annotations

import base64
import mimetypes
import os
import tempfile
import threading
from collections import Counter
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Optional

from infra.config import TicketsConfig, load_config
from infra.logger import get_logger
from logic.colaboradores import Anotador, anotacion_desde_dict
from logic.errores import TransicionInvalidaError, TransporteError
from logic.modelos import Anotacion, EstadoTicket, Ticket


_CFG = load_config()
log = get_logger("tickets")

_TRANSICIONES = {
    EstadoTicket.PENDIENTE: {EstadoTicket.PROCESANDO},
    EstadoTicket.PROCESANDO: {EstadoTicket.HECHO, EstadoTicket.ERROR},
}


@dataclass(frozen=True)
class ArchivoTicket:
    nombre: str
    contenido: bytes
    tipo_mime: str

    @classmethod
    def desde_ruta(cls, path: str | Path) -> "ArchivoTicket":
        path = Path(path)
        tipo, _ = mimetypes.guess_type(path.name)
        return cls(path.name, path.read_bytes(), tipo or "application/octet-stream")


class VistaPrevia:
    """Copia temporal de la imagen de un ticket, disponible desde que se recibe."""

    def __init__(self, contenido: bytes, sufijo: str = ""):
        fd, ruta = tempfile.mkstemp(prefix="ticket_", suffix=sufijo)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(contenido)
        except OSError:
            os.unlink(ruta)
            raise
        self.ruta = Path(ruta)
        self.liberada = False

    def liberar(self) -> None:
        if self.liberada:
            return
        self.ruta.unlink(missing_ok=True)
        self.liberada = True

    def __repr__(self) -> str:
        return f"VistaPrevia({str(self.ruta)!r}, liberada={self.liberada})"


def tickets_hechos(tickets: Iterable[Ticket]) -> list[Ticket]:
    """Tickets utilizables para conciliar. Su posicion en esta lista es el indice de ticket."""
    return [t for t in tickets if t.estado is EstadoTicket.HECHO]


class ProcesadorTickets:
    """Recepcion y anotacion de tickets, de a uno por vez y en orden de llegada.

    Cada ticket pasa por pending -> processing -> done | error. Los estados finales
    no se abandonan. Todas las mutaciones pasan por `_transicionar`, bajo lock;
    `tickets` devuelve una foto inmutable de la coleccion.
    """

    def __init__(self, anotador: Anotador, config: Optional[TicketsConfig] = None):
        self._anotador = anotador
        self._cfg = config or _CFG.tickets
        self._tickets: list[Ticket] = []
        self._lock = threading.RLock()
        # A lo sumo una anotacion en vuelo, aunque llamen desde varios hilos
        self._en_vuelo = threading.Lock()

    # ---- consulta ----
    @property
    def tickets(self) -> list[Ticket]:
        with self._lock:
            return list(self._tickets)

    def ticket(self, nombre: str) -> Optional[Ticket]:
        with self._lock:
            return next((t for t in self._tickets if t.nombre == nombre), None)

    def conteo_estados(self) -> dict[EstadoTicket, int]:
        conteo = Counter(t.estado for t in self.tickets)
        return {estado: conteo.get(estado, 0) for estado in EstadoTicket}

    # ---- recepcion ----
    def aceptado(self, tipo_mime: str) -> bool:
        tipo = (tipo_mime or "").lower()
        return tipo in self._cfg.tipos_aceptados or any(
            tipo.startswith(p) for p in self._cfg.prefijos_aceptados
        )

    def _nombre_unico(self, nombre: str, nuevos: list[Ticket]) -> str:
        usados = {t.nombre for t in self._tickets} | {t.nombre for t in nuevos}
        if nombre not in usados:
            return nombre
        base, ext = os.path.splitext(nombre)
        n = 2
        while f"{base} ({n}){ext}" in usados:
            n += 1
        return f"{base} ({n}){ext}"

    def recibir(self, archivos: Iterable[ArchivoTicket]) -> list[Ticket]:
        """Da de alta los archivos aceptados como tickets pendientes.

        Solo imagenes y PDF. Las imagenes reciben su vista previa aqui, antes de
        cualquier llamada remota.
        """
        archivos = list(archivos)
        aceptados = [a for a in archivos if self.aceptado(a.tipo_mime)]
        rechazados = [a.nombre for a in archivos if not self.aceptado(a.tipo_mime)]
        if rechazados:
            log.warning("Sube imágenes (JPG, PNG) o PDFs. Ignorados: %s", ", ".join(rechazados))
        if not aceptados:
            return []

        with self._lock:
            nuevos: list[Ticket] = []
            try:
                for archivo in aceptados:
                    ticket = Ticket(
                        nombre=self._nombre_unico(archivo.nombre, nuevos),
                        tipo_mime=archivo.tipo_mime,
                        contenido=archivo.contenido,
                    )
                    if ticket.es_imagen:
                        sufijo = Path(archivo.nombre).suffix
                        ticket = replace(ticket, vista_previa=VistaPrevia(archivo.contenido, sufijo))
                    nuevos.append(ticket)
            except OSError:
                for t in nuevos:
                    self._liberar(t)
                raise
            self._tickets.extend(nuevos)

        log.info("%d tickets recibidos", len(nuevos))
        return nuevos

    # ---- maquina de estados ----
    def _transicionar(
        self,
        nombre: str,
        nuevo: EstadoTicket,
        anotacion: Optional[Anotacion] = None,
    ) -> Optional[Ticket]:
        with self._lock:
            for i, actual in enumerate(self._tickets):
                if actual.nombre == nombre:
                    break
            else:
                log.info("Ticket %s descartado durante el proceso", nombre)
                return None

            if nuevo not in _TRANSICIONES.get(actual.estado, set()):
                raise TransicionInvalidaError(
                    f"{nombre}: {actual.estado.value} -> {nuevo.value} no permitido"
                )
            cambios = {"estado": nuevo}
            if anotacion is not None:
                cambios["anotacion"] = anotacion
            actualizado = replace(actual, **cambios)
            self._tickets[i] = actualizado

        log.info("Ticket %s: %s -> %s", nombre, actual.estado.value, nuevo.value)
        return actualizado

    def _siguiente_pendiente(self) -> Optional[Ticket]:
        with self._lock:
            return next((t for t in self._tickets if t.estado is EstadoTicket.PENDIENTE), None)

    def _anotar(self, ticket: Ticket) -> None:
        if self._transicionar(ticket.nombre, EstadoTicket.PROCESANDO) is None:
            return

        payload = base64.b64encode(ticket.contenido).decode("ascii")
        try:
            anotacion = self._anotador.analizar(payload, ticket.tipo_mime)
        except TransporteError as e:
            log.warning("Ticket %s: error de conexión con el anotador (%s)", ticket.nombre, e)
            anotacion = Anotacion(error=self._cfg.error_conexion)
        except Exception as e:
            log.exception("Ticket %s: fallo inesperado al anotar", ticket.nombre)
            anotacion = Anotacion(error=f"Error al analizar el ticket: {e}")
        if isinstance(anotacion, dict):
            anotacion = anotacion_desde_dict(anotacion)

        estado = EstadoTicket.HECHO if anotacion.valida else EstadoTicket.ERROR
        self._transicionar(ticket.nombre, estado, anotacion)

    def procesar(self) -> list[Ticket]:
        """Anota todos los tickets pendientes, uno detras de otro.

        Un fallo de un ticket queda registrado en ese ticket y no frena al resto.
        """
        with self._en_vuelo:
            while True:
                ticket = self._siguiente_pendiente()
                if ticket is None:
                    break
                self._anotar(ticket)
        return self.tickets

    # ---- liberacion ----
    @staticmethod
    def _liberar(ticket: Ticket) -> None:
        if ticket.vista_previa is not None:
            ticket.vista_previa.liberar()

    def reiniciar(self) -> None:
        """Unica forma de quitar tickets: los indices de un resultado dependen de su orden."""
        with self._lock:
            tickets, self._tickets = self._tickets, []
        for t in tickets:
            self._liberar(t)
        if tickets:
            log.info("%d tickets descartados", len(tickets))

    def close(self) -> None:
        self.reiniciar()

    def __enter__(self) -> "ProcesadorTickets":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
