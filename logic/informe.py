from __future__ import annotations
from datetime import datetime
from typing import Any, Iterable

import pandas as pd

from logic.lectura import parsear_fecha
from logic.modelos import Movimiento, ResultadoConciliacion, Ticket
from logic.tickets import tickets_hechos


TABLA_RESUMEN = "Resumen"
TABLA_CONCILIADOS = "Conciliados"
TABLA_SIN_TICKET = "Sin ticket"
TABLA_TICKETS_SIN_MOVIMIENTO = "Tickets sin movimiento"

COLUMNAS_FECHA = ("Fecha movimiento", "Fecha ticket", "Fecha")

SIN_DATO = "—"


def _o_sin_dato(valor: Any) -> Any:
    return SIN_DATO if valor is None or valor == "" else valor


def tabla_resumen(resultado: ResultadoConciliacion, generado: datetime | None = None) -> pd.DataFrame:
    est = resultado.estadisticas
    generado = generado or resultado.generado_en
    filas = [
        ("Informe", "INFORME DE CONCILIACIÓN DE GASTOS"),
        ("Fecha del informe", generado.date()),
        ("Conciliación ejecutada", generado.strftime("%d/%m/%Y %H:%M")),
        ("Total movimientos", est.total_movimientos),
        ("Conciliados (con ticket)", est.conciliados),
        ("Sin ticket", est.sin_ticket),
        ("Tickets sin movimiento", est.tickets_sin_movimiento),
        ("% Conciliación", f"{est.porcentaje}%"),
        ("Matches descartados", len(resultado.rechazos)),
        ("Análisis IA", resultado.resumen or SIN_DATO),
    ]
    return pd.DataFrame(filas, columns=["Concepto", "Valor"])


def tabla_conciliados(
    resultado: ResultadoConciliacion,
    movimientos: dict[int, Movimiento],
    hechos: list[Ticket],
) -> pd.DataFrame:
    rows = []
    for e in resultado.emparejamientos:
        mov = movimientos.get(e.indice_movimiento)
        tick = hechos[e.indice_ticket] if 0 <= e.indice_ticket < len(hechos) else None
        anot = tick.anotacion if tick else None
        rows.append({
            "Score (%)": e.score,
            "Fecha movimiento": _o_sin_dato(mov.fecha if mov else None),
            "Importe (€)": mov.importe if mov else SIN_DATO,
            "Concepto bancario": _o_sin_dato(mov.concepto if mov else None),
            "Ticket": tick.nombre if tick else SIN_DATO,
            "Fecha ticket": _o_sin_dato(parsear_fecha(anot.fecha) if anot else None),
            "Importe ticket (€)": _o_sin_dato(anot.importe if anot else None),
            "Comercio": _o_sin_dato(anot.comercio if anot else None),
            "Tipo": _o_sin_dato(anot.categoria if anot else None),
            "Razón match": e.razon,
        })
    return pd.DataFrame(rows)


def tabla_sin_ticket(resultado: ResultadoConciliacion, movimientos: dict[int, Movimiento]) -> pd.DataFrame:
    rows = []
    for idx in resultado.movimientos_sin_ticket:
        mov = movimientos.get(idx)
        if mov is None:
            continue
        rows.append({
            "Fecha": _o_sin_dato(mov.fecha),
            "Importe (€)": mov.importe,
            "Concepto": _o_sin_dato(mov.concepto),
            "Estado": "Falta ticket",
        })
    return pd.DataFrame(rows)


def tabla_tickets_sin_movimiento(resultado: ResultadoConciliacion, hechos: list[Ticket]) -> pd.DataFrame:
    rows = []
    for idx in resultado.tickets_sin_movimiento:
        if not 0 <= idx < len(hechos):
            continue
        t = hechos[idx]
        a = t.anotacion
        rows.append({
            "Ticket": t.nombre,
            "Importe (€)": _o_sin_dato(a.importe if a else None),
            "Fecha": _o_sin_dato(parsear_fecha(a.fecha) if a else None),
            "Comercio": _o_sin_dato(a.comercio if a else None),
            "Tipo": _o_sin_dato(a.categoria if a else None),
            "Estado": "Sin movimiento asociado",
        })
    return pd.DataFrame(rows)


def generar_informe(
    resultado: ResultadoConciliacion,
    movimientos: Iterable[Movimiento],
    tickets: Iterable[Ticket],
) -> dict[str, pd.DataFrame]:
    """Arma las tablas del informe, en orden. Las tablas de detalle vacias se omiten.

    Los indices de ticket se resuelven contra la lista de tickets hechos, la misma
    que usa el conciliador. Un indice que ya no resuelve deja "—" en Conciliados
    y se saltea en las tablas de pendientes.
    """
    por_indice = {m.indice: m for m in movimientos}
    hechos = tickets_hechos(tickets)

    tablas: dict[str, pd.DataFrame] = {TABLA_RESUMEN: tabla_resumen(resultado)}
    detalle = (
        (TABLA_CONCILIADOS, tabla_conciliados(resultado, por_indice, hechos)),
        (TABLA_SIN_TICKET, tabla_sin_ticket(resultado, por_indice)),
        (TABLA_TICKETS_SIN_MOVIMIENTO, tabla_tickets_sin_movimiento(resultado, hechos)),
    )
    for nombre, df in detalle:
        if not df.empty:
            tablas[nombre] = df
    return tablas
