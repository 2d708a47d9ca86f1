from __future__ import annotations
import os
import yaml
from dataclasses import dataclass
from pathlib import Path


DEFAULT_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

_DEFAULTS: dict = {
    "app": {
        "title": "Conciliador de tickets",
        "fecha_vista_formato": "%d/%m/%Y",
    },
    "lectura": {
        "filas_encabezado": 10,
        "csv_encodings": ["utf-8-sig", "utf-8", "cp1252", "latin1"],
        "csv_separadores": [";", ",", "\t"],
        "palabras_fecha": ["fech", "date"],
        "palabras_importe": ["importe", "amount", "cargo", "abono", "valor"],
        "palabras_concepto": ["concepto", "descr", "concept", "detalle"],
    },
    "tickets": {
        "prefijos_aceptados": ["image/"],
        "tipos_aceptados": ["application/pdf"],
        "error_conexion": "Error de conexión",
    },
    "servicios": {
        "url_anotador": "http://localhost:3000/api/analyze-ticket",
        "url_emparejador": "http://localhost:3000/api/match",
        "timeout_segundos": 60,
    },
    "export": {
        "formato_fecha_excel": "DD/MM/YYYY",
        "nombre_archivo": "conciliacion_{fecha}.xlsx",
    },
}


@dataclass(frozen=True)
class AppConfig:
    title: str
    fecha_vista_formato: str


@dataclass(frozen=True)
class LecturaConfig:
    filas_encabezado: int
    csv_encodings: list[str]
    csv_separadores: list[str]
    palabras_fecha: list[str]
    palabras_importe: list[str]
    palabras_concepto: list[str]


@dataclass(frozen=True)
class TicketsConfig:
    prefijos_aceptados: list[str]
    tipos_aceptados: list[str]
    error_conexion: str


@dataclass(frozen=True)
class ServiciosConfig:
    url_anotador: str
    url_emparejador: str
    timeout_segundos: float


@dataclass(frozen=True)
class ExportConfig:
    formato_fecha_excel: str
    nombre_archivo: str


@dataclass(frozen=True)
class Config:
    app: AppConfig
    lectura: LecturaConfig
    tickets: TicketsConfig
    servicios: ServiciosConfig
    export: ExportConfig


def _merge(base: dict, override: dict | None) -> dict:
    """Mezcla recursiva: las claves del YAML pisan a las de `base`."""
    out = dict(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(path: str | Path = DEFAULT_PATH) -> Config:
    data: dict = {}
    path = Path(path)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    data = _merge(_DEFAULTS, data)

    servicios = dict(data["servicios"])
    # Variables de entorno tienen prioridad sobre el archivo
    servicios["url_anotador"] = os.getenv("CONCILIADOR_URL_ANOTADOR", servicios["url_anotador"])
    servicios["url_emparejador"] = os.getenv("CONCILIADOR_URL_EMPAREJADOR", servicios["url_emparejador"])

    return Config(
        app=AppConfig(**data["app"]),
        lectura=LecturaConfig(**data["lectura"]),
        tickets=TicketsConfig(**data["tickets"]),
        servicios=ServiciosConfig(**servicios),
        export=ExportConfig(**data["export"]),
    )
