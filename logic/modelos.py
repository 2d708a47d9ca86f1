from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Optional


Categoria = Literal[
    "restaurante", "transporte", "hotel", "gasolina",
    "supermercado", "parking", "farmacia", "otro",
]
CATEGORIAS: tuple[str, ...] = (
    "restaurante", "transporte", "hotel", "gasolina",
    "supermercado", "parking", "farmacia", "otro",
)


@dataclass(frozen=True)
class Movimiento:
    indice: int          # posicion estable en la lista normalizada
    fecha: Any           # date si se pudo interpretar, si no el valor crudo (o None)
    importe: float       # nunca 0
    concepto: str        # texto libre
    fila: tuple = ()     # fila original


@dataclass(frozen=True)
class Anotacion:
    importe: Optional[float] = None
    fecha: Optional[str] = None
    comercio: Optional[str] = None
    concepto: Optional[str] = None
    categoria: Optional[Categoria] = None
    confianza: Optional[int] = None
    error: Optional[str] = None

    @property
    def valida(self) -> bool:
        return not self.error


class EstadoTicket(str, Enum):
    PENDIENTE = "pending"
    PROCESANDO = "processing"
    HECHO = "done"
    ERROR = "error"

    @property
    def final(self) -> bool:
        return self in (EstadoTicket.HECHO, EstadoTicket.ERROR)


@dataclass(frozen=True)
class Ticket:
    nombre: str                       # unico en la sesion, clave de correlacion
    tipo_mime: str
    contenido: bytes = field(repr=False)
    estado: EstadoTicket = EstadoTicket.PENDIENTE
    anotacion: Optional[Anotacion] = None
    vista_previa: Optional[Any] = field(default=None, compare=False)  # VistaPrevia (logic.tickets)

    @property
    def es_imagen(self) -> bool:
        return self.tipo_mime.startswith("image/")


@dataclass(frozen=True)
class Emparejamiento:
    indice_movimiento: int
    indice_ticket: int
    score: int           # 0-100
    razon: str


@dataclass(frozen=True)
class Estadisticas:
    total_movimientos: int
    conciliados: int
    sin_ticket: int
    tickets_sin_movimiento: int
    porcentaje: int


@dataclass(frozen=True)
class ResultadoConciliacion:
    emparejamientos: list[Emparejamiento]
    movimientos_sin_ticket: list[int]
    tickets_sin_movimiento: list[int]
    estadisticas: Estadisticas
    resumen: Optional[str] = None
    rechazos: list[str] = field(default_factory=list)
    generado_en: datetime = field(default_factory=datetime.now)


def formatear_fecha(valor: Any, formato: str = "%d/%m/%Y") -> str:
    """Fecha en formato de vista (DD/MM/YYYY). Valores no interpretables se devuelven como texto."""
    if valor is None or valor == "":
        return "—"
    if isinstance(valor, date):
        return valor.strftime(formato)
    return str(valor)
