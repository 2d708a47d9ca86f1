from __future__ import annotations
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Optional, Sequence, Union

import pandas as pd

from infra.config import load_config
from infra.export import guardar_excel, tablas_a_excel_bytes
from infra.loader_grilla import cargar_grilla
from infra.logger import get_logger
from logic.colaboradores import Anotador, Emparejador
from logic.conciliacion import Conciliador
from logic.errores import NoListoError
from logic.informe import COLUMNAS_FECHA, generar_informe
from logic.lectura import MapeoColumnas, aplicar_mapeo, detectar_columnas, leer_grilla
from logic.modelos import Movimiento, ResultadoConciliacion, Ticket
from logic.tickets import ArchivoTicket, ProcesadorTickets


_CFG = load_config()
log = get_logger("sesion")


class SesionConciliacion:
    """Estado de una conciliacion: extracto, tickets y ultimo resultado.

    Nada se persiste; `reiniciar` (o salir del `with`) libera las vistas previas.
    """

    def __init__(self, anotador: Anotador, emparejador: Emparejador):
        self.tickets_proc = ProcesadorTickets(anotador)
        self.conciliador = Conciliador(emparejador)
        self.encabezados: list[str] = []
        self.filas: pd.DataFrame = pd.DataFrame()
        self.mapeo = MapeoColumnas()
        self.movimientos: list[Movimiento] = []

    # ---- extracto ----
    def cargar_extracto(self, grilla: Union[pd.DataFrame, Iterable[Sequence[Any]]]) -> MapeoColumnas:
        """Lee la grilla y propone un mapeo. Los movimientos se generan con `mapear`."""
        self.encabezados, self.filas = leer_grilla(grilla)
        self.mapeo = detectar_columnas(self.encabezados)
        self.movimientos = []
        self.conciliador.olvidar()
        log.info("%d movimientos cargados, mapeo sugerido %s", len(self.filas), self.mapeo)
        return self.mapeo

    def cargar_archivo_extracto(self, path_or_file: Union[str, Path, BinaryIO]) -> MapeoColumnas:
        return self.cargar_extracto(cargar_grilla(path_or_file))

    def mapear(self, **overrides: Optional[int]) -> list[Movimiento]:
        """Aplica el mapeo sugerido, con los roles que se indiquen reemplazados."""
        if overrides:
            self.mapeo = self.mapeo.con(**overrides)
        self.movimientos = aplicar_mapeo(self.filas, self.mapeo)
        self.conciliador.olvidar()
        return self.movimientos

    # ---- tickets ----
    @property
    def tickets(self) -> list[Ticket]:
        return self.tickets_proc.tickets

    def agregar_tickets(self, archivos: Iterable[Union[ArchivoTicket, str, Path]]) -> list[Ticket]:
        archivos = [a if isinstance(a, ArchivoTicket) else ArchivoTicket.desde_ruta(a) for a in archivos]
        return self.tickets_proc.recibir(archivos)

    def procesar_tickets(self) -> list[Ticket]:
        return self.tickets_proc.procesar()

    # ---- conciliacion ----
    @property
    def resultado(self) -> Optional[ResultadoConciliacion]:
        return self.conciliador.resultado

    def conciliar(self) -> ResultadoConciliacion:
        return self.conciliador.conciliar(self.movimientos, self.tickets)

    def informe(self) -> dict[str, pd.DataFrame]:
        if self.resultado is None:
            raise NoListoError("Todavía no hay una conciliación para exportar")
        return generar_informe(self.resultado, self.movimientos, self.tickets)

    def _formato_fechas(self) -> dict[str, str]:
        return {col: _CFG.export.formato_fecha_excel for col in COLUMNAS_FECHA}

    def exportar(self) -> bytes:
        return tablas_a_excel_bytes(self.informe(), self._formato_fechas())

    def guardar(self, destino: Union[str, Path, None] = None) -> Path:
        return guardar_excel(self.informe(), destino, self._formato_fechas())

    # ---- ciclo de vida ----
    def reiniciar(self) -> None:
        self.tickets_proc.reiniciar()
        self.conciliador.olvidar()
        self.encabezados, self.filas = [], pd.DataFrame()
        self.mapeo = MapeoColumnas()
        self.movimientos = []

    def __enter__(self) -> "SesionConciliacion":
        return self

    def __exit__(self, *exc) -> None:
        self.reiniciar()
