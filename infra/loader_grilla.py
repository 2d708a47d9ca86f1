import csv
import io
from pathlib import Path
from typing import BinaryIO, Union

import pandas as pd

from infra.config import load_config
from infra.logger import get_logger


_CONFIG = load_config()
log = get_logger("loader")

_EXTENSIONES_EXCEL = (".xlsx", ".xlsm")


def _nombre(path_or_file: Union[str, Path, BinaryIO]) -> str:
    if isinstance(path_or_file, (str, Path)):
        return str(path_or_file)
    return str(getattr(path_or_file, "name", "") or "")


def _rebobinar(obj) -> None:
    if hasattr(obj, "seek"):
        obj.seek(0)


def _es_excel(path_or_file: Union[str, Path, BinaryIO]) -> bool:
    nombre = _nombre(path_or_file).lower()
    if nombre.endswith(_EXTENSIONES_EXCEL):
        return True
    if isinstance(path_or_file, (str, Path)):
        return False
    # Sin nombre: un .xlsx es un zip (firma PK)
    _rebobinar(path_or_file)
    firma = path_or_file.read(4)
    _rebobinar(path_or_file)
    return firma[:2] == b"PK"


def leer_excel_crudo(path_or_file: Union[str, Path, BinaryIO], hoja: Union[int, str] = 0) -> pd.DataFrame:
    """Lee una hoja de Excel sin cabecera (la detecta logic.lectura)."""
    _rebobinar(path_or_file)
    return pd.read_excel(path_or_file, sheet_name=hoja, header=None, engine="openpyxl", dtype=object)


def leer_csv_crudo(path_or_file: Union[str, Path, BinaryIO]) -> pd.DataFrame:
    """Intenta leer un CSV probando encodings y separadores comunes.

    Se queda con el primer intento que produzca mas de una columna.
    """
    if isinstance(path_or_file, (str, Path)):
        with open(path_or_file, "rb") as f:
            contenido = f.read()
    else:
        _rebobinar(path_or_file)
        contenido = path_or_file.read()
        if isinstance(contenido, str):
            contenido = contenido.encode("utf-8")

    last_err: Exception | None = None
    for enc in _CONFIG.lectura.csv_encodings:
        try:
            texto = contenido.decode(enc)
        except UnicodeDecodeError as e:
            last_err = e
            continue
        for sep in _CONFIG.lectura.csv_separadores:
            # Las filas de titulo suelen tener menos campos que la cabecera
            ancho = max((len(f) for f in csv.reader(io.StringIO(texto), delimiter=sep)), default=0)
            if ancho <= 1:
                continue
            try:
                df = pd.read_csv(
                    io.StringIO(texto),
                    sep=sep,
                    engine="python",
                    header=None,
                    names=list(range(ancho)),
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=False,
                )
            except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                last_err = e
                continue
            log.info("CSV leido con encoding=%s sep=%r", enc, sep)
            return df
    raise ValueError(
        f"No se pudo leer {_nombre(path_or_file) or 'el CSV'} con encoding/separador común"
    ) from last_err


def cargar_grilla(path_or_file: Union[str, Path, BinaryIO]) -> pd.DataFrame:
    """Carga un extracto (Excel: primera hoja, o CSV) como grilla de celdas sin cabecera.

    Acepta ruta o archivo en memoria. No persiste archivos.
    """
    if _es_excel(path_or_file):
        df = leer_excel_crudo(path_or_file)
    else:
        df = leer_csv_crudo(path_or_file)
    log.info("Grilla cargada de %s: %d filas x %d columnas", _nombre(path_or_file) or "<memoria>", *df.shape)
    return df
