from __future__ import annotations
import io
from datetime import date
from pathlib import Path

import pandas as pd
from openpyxl.utils import get_column_letter

from infra.config import load_config
from infra.logger import get_logger


_CFG = load_config()
log = get_logger("export")

_ANCHO_MIN, _ANCHO_MAX = 10, 60


def _formatear_fechas(ws, formato_columnas_fecha: dict[str, str]) -> None:
    # Mapear nombres de columnas a letras
    headers = [c.value for c in ws[1]]
    for col_name, fmt in formato_columnas_fecha.items():
        if col_name in headers:
            col_idx = headers.index(col_name) + 1
            col_letter = ws.cell(row=1, column=col_idx).column_letter
            for cell in ws[col_letter][1:]:
                cell.number_format = fmt


def _ajustar_anchos(ws, df: pd.DataFrame) -> None:
    for i, col in enumerate(df.columns, start=1):
        largos = [len(str(col))] + [len(str(v)) for v in df[col].tolist()]
        ancho = min(_ANCHO_MAX, max(_ANCHO_MIN, max(largos) + 2))
        ws.column_dimensions[get_column_letter(i)].width = ancho


def tablas_a_excel_bytes(
    tablas: dict[str, pd.DataFrame],
    formato_columnas_fecha: dict[str, str] | None = None,
) -> bytes:
    """
    Exporta varias tablas a un libro Excel, una hoja por tabla y en el orden recibido.
    Conserva los tipos fecha (no texto); si se pasa `formato_columnas_fecha` con
    {nombre_columna: "DD/MM/YYYY"}, aplica number_format en todas las hojas.
    """
    buff = io.BytesIO()
    with pd.ExcelWriter(buff, engine="openpyxl") as writer:
        for sheet_name, df in tablas.items():
            df.to_excel(writer, index=False, sheet_name=sheet_name)
            ws = writer.sheets[sheet_name]
            if formato_columnas_fecha:
                _formatear_fechas(ws, formato_columnas_fecha)
            _ajustar_anchos(ws, df)
    return buff.getvalue()


def nombre_archivo_por_defecto(hoy: date | None = None) -> str:
    hoy = hoy or date.today()
    return _CFG.export.nombre_archivo.format(fecha=hoy.isoformat())


def guardar_excel(
    tablas: dict[str, pd.DataFrame],
    destino: str | Path | None = None,
    formato_columnas_fecha: dict[str, str] | None = None,
) -> Path:
    """Escribe el libro en disco. Si `destino` es un directorio (o None), usa el nombre por defecto."""
    destino = Path(destino) if destino is not None else Path(".")
    if destino.is_dir():
        destino = destino / nombre_archivo_por_defecto()
    destino.write_bytes(tablas_a_excel_bytes(tablas, formato_columnas_fecha))
    log.info("Excel guardado en %s (%d hojas)", destino, len(tablas))
    return destino
