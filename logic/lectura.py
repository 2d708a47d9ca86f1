from __future__ import annotations

import math
import re
import unicodedata
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from numbers import Integral, Real
from typing import Any, Iterable, Sequence

import pandas as pd
from openpyxl.utils import get_column_letter

from infra.config import load_config
from infra.logger import get_logger
from logic.errores import ConfiguracionError
from logic.modelos import Movimiento


_CFG = load_config()
log = get_logger("lectura")

_EXCEL_EPOCH = datetime(1899, 12, 30)
_FECHA_TEXTO = re.compile(r"^\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}(\s.*)?$")
_FECHA_ISO = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}")
_RUIDO_IMPORTE = re.compile(r"\s|[€$£]|EUR|USD", re.IGNORECASE)
_IMPORTE_SEPARADORES = re.compile(r"[+-]?[\d.,]+")


# ==========================================================
# Grilla cruda -> encabezados + filas
# ==========================================================
def _vacia(valor: Any) -> bool:
    if valor is None:
        return True
    if isinstance(valor, str):
        return not valor.strip()
    try:
        return bool(pd.isna(valor))
    except (TypeError, ValueError):
        return False


def _es_texto_no_numerico(valor: Any) -> bool:
    if not isinstance(valor, str) or not valor.strip():
        return False
    try:
        numero = float(valor.strip())
    except ValueError:
        return True
    return math.isnan(numero)


def _a_dataframe(grilla: pd.DataFrame | Iterable[Sequence[Any]]) -> pd.DataFrame:
    if isinstance(grilla, pd.DataFrame):
        df = grilla.copy()
    else:
        df = pd.DataFrame([list(fila or []) for fila in grilla], dtype=object)
    df.columns = range(df.shape[1])
    return df.reset_index(drop=True)


def detectar_encabezado(df: pd.DataFrame, tope: int | None = None) -> int:
    """
    Detecta la fila de encabezado de una grilla leida sin cabecera.

    Se queda con la primera fila (entre las `tope` primeras) que tenga al menos
    dos celdas de texto no numerico. Los extractos bancarios suelen traer filas
    de titulo o en blanco antes de la cabecera real.

    Parámetros
    ----------
    df : pd.DataFrame
        DataFrame leído con header=None.
    tope : int, opcional
        Cantidad máxima de filas a analizar desde arriba (por defecto, config).

    Retorna
    -------
    int
        Índice de la fila que se usará como encabezado (0 si ninguna califica).
    """
    tope = _CFG.lectura.filas_encabezado if tope is None else tope
    for i in range(min(tope, len(df))):
        textos = sum(_es_texto_no_numerico(v) for v in df.iloc[i].tolist())
        if textos >= 2:
            return i
    return 0


def leer_grilla(
    grilla: pd.DataFrame | Iterable[Sequence[Any]],
    tope: int | None = None,
) -> tuple[list[str], pd.DataFrame]:
    """Separa una grilla de celdas en (encabezados, filas de datos).

    No convierte tipos: las filas conservan los valores tal cual vienen.
    Las columnas sin titulo reciben "Columna <letra>".
    """
    df = _a_dataframe(grilla)
    if df.empty:
        return [f"Columna {get_column_letter(i + 1)}" for i in range(df.shape[1])], df

    fila_header = detectar_encabezado(df, tope)

    encabezados: list[str] = []
    for i, valor in enumerate(df.iloc[fila_header].tolist()):
        if _vacia(valor):
            encabezados.append(f"Columna {get_column_letter(i + 1)}")
        else:
            encabezados.append(_normalizar_descripcion(valor).strip())

    datos = df.iloc[fila_header + 1:]
    conservar = [
        not all(_vacia(v) for v in fila)
        for fila in datos.itertuples(index=False, name=None)
    ]
    filas = datos.loc[conservar].reset_index(drop=True)

    log.info("Encabezado en fila %d, %d filas de datos", fila_header, len(filas))
    return encabezados, filas


# ==========================================================
# Mapeo de columnas
# ==========================================================
def _sanitize_header(value: str) -> str:
    lowered = str(value).lower()
    replacements = {
        "cr?dito": "credito",
        "crÃ©dito": "credito",
        "d?bito": "debito",
        "dÃ©bito": "debito",
        "descripci?n": "descripcion",
        "descripciÃ³n": "descripcion",
    }
    for wrong, corrected in replacements.items():
        if wrong in lowered:
            lowered = lowered.replace(wrong, corrected)
    normalized = unicodedata.normalize("NFKD", lowered)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


@dataclass(frozen=True)
class MapeoColumnas:
    fecha: int | None = None
    importe: int | None = None
    concepto: int | None = None

    def con(self, **cambios: int | None) -> "MapeoColumnas":
        """Copia con los roles indicados reemplazados (override manual)."""
        return replace(self, **cambios)


def detectar_columnas(
    encabezados: Sequence[str],
    palabras: dict[str, list[str]] | None = None,
) -> MapeoColumnas:
    """Asigna fecha/importe/concepto por palabras clave. Gana la primera columna que coincide."""
    palabras = palabras or {
        "fecha": _CFG.lectura.palabras_fecha,
        "importe": _CFG.lectura.palabras_importe,
        "concepto": _CFG.lectura.palabras_concepto,
    }
    claves = [_sanitize_header(h) for h in encabezados]

    def pick(keywords: list[str]) -> int | None:
        kws = [_sanitize_header(kw) for kw in keywords]
        for i, clave in enumerate(claves):
            if any(kw in clave for kw in kws):
                return i
        return None

    return MapeoColumnas(
        fecha=pick(palabras.get("fecha", [])),
        importe=pick(palabras.get("importe", [])),
        concepto=pick(palabras.get("concepto", [])),
    )


def parsear_importe(valor: Any) -> float | None:
    """Importe como float. La coma se toma como separador decimal; None si no se puede leer.

    Solo se quitan espacios y simbolos de moneda: un texto con letras ("Ref 123")
    no es un importe.
    """
    if valor is None or isinstance(valor, bool):
        return None
    if isinstance(valor, Real):
        numero = float(valor)
        return numero if math.isfinite(numero) else None

    texto = _RUIDO_IMPORTE.sub("", str(valor))
    if _IMPORTE_SEPARADORES.fullmatch(texto):
        if "," in texto and "." in texto:
            # El separador que aparece ultimo es el decimal, el otro es de miles
            if texto.rfind(",") > texto.rfind("."):
                texto = texto.replace(".", "").replace(",", ".")
            else:
                texto = texto.replace(",", "")
        else:
            texto = texto.replace(",", ".")
    try:
        numero = float(texto)
    except ValueError:
        return None
    return numero if math.isfinite(numero) else None


def limpiar_importe_serie(serie: pd.Series, decimales: int | None = 2) -> pd.Series:
    numeros = pd.to_numeric(serie.map(parsear_importe), errors="coerce").fillna(0.0)
    return numeros if decimales is None else numeros.round(decimales)


def parsear_fecha(valor: Any) -> Any:
    """date cuando el valor se puede interpretar como fecha; si no, el valor crudo (o None)."""
    if _vacia(valor):
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    if isinstance(valor, Real) and not isinstance(valor, bool):
        # Numero de serie de Excel
        if 1 <= float(valor) < 2958466:
            return (_EXCEL_EPOCH + timedelta(days=float(valor))).date()
        return valor

    texto = str(valor).strip()
    if not _FECHA_TEXTO.match(texto):
        return texto
    ts = pd.to_datetime(texto, dayfirst=not _FECHA_ISO.match(texto), errors="coerce")
    if pd.isna(ts):
        return texto
    return ts.date()


def _normalizar_descripcion(valor) -> str:
    """Devuelve siempre texto sin sufijos `.0` cuando provienen de números."""
    if _vacia(valor):
        return ""
    if isinstance(valor, str):
        return valor
    if isinstance(valor, Integral):
        return str(int(valor))
    if isinstance(valor, Real):
        numero = float(valor)
        if math.isfinite(numero) and numero.is_integer():
            return str(int(numero))
        return str(valor)
    return str(valor)


def normalizar_columna_descripcion(serie: pd.Series) -> pd.Series:
    """Normaliza una serie de descripciones garantizando representación textual uniforme."""
    return serie.map(_normalizar_descripcion)


def aplicar_mapeo(filas: pd.DataFrame, mapeo: MapeoColumnas) -> list[Movimiento]:
    """Convierte las filas de datos en movimientos.

    El importe es obligatorio. Las filas con importe 0 (o ilegible) se descartan
    y el indice se asigna despues de filtrar, por lo que queda denso desde 0.
    """
    if mapeo.importe is None:
        raise ConfiguracionError("Selecciona al menos la columna de importe")
    ancho = filas.shape[1]
    for rol in ("fecha", "importe", "concepto"):
        idx = getattr(mapeo, rol)
        if idx is not None and not 0 <= idx < ancho:
            raise ConfiguracionError(f"Columna de {rol} fuera de rango: {idx} (hay {ancho})")

    n = len(filas)
    importes = limpiar_importe_serie(filas.iloc[:, mapeo.importe], decimales=None)
    fechas = filas.iloc[:, mapeo.fecha].map(parsear_fecha) if mapeo.fecha is not None else [None] * n
    conceptos = (
        normalizar_columna_descripcion(filas.iloc[:, mapeo.concepto])
        if mapeo.concepto is not None
        else [""] * n
    )

    out: list[Movimiento] = []
    for fila, f, imp, desc in zip(filas.itertuples(index=False, name=None), fechas, importes, conceptos):
        imp = float(imp)
        if imp == 0.0:
            continue
        # Menos de un centimo no se redondea a cero
        redondeado = round(imp, 2)
        out.append(Movimiento(
            indice=len(out),
            fecha=f,
            importe=redondeado if redondeado != 0 else imp,
            concepto=desc,
            fila=fila,
        ))
    log.info("%d movimientos normalizados (%d filas descartadas)", len(out), n - len(out))
    return out
