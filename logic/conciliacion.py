from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from numbers import Integral, Real
from typing import Any, Iterable, Optional

from infra.config import load_config
from infra.logger import get_logger
from logic.colaboradores import Emparejador
from logic.errores import NoListoError, TransporteError, ValidacionError
from logic.modelos import (
    Emparejamiento,
    Estadisticas,
    Movimiento,
    ResultadoConciliacion,
    Ticket,
    formatear_fecha,
)
from logic.tickets import tickets_hechos


_CFG = load_config()
log = get_logger("conciliacion")


# ==========================================================
# Resumenes que se envian al emparejador
# ==========================================================
def resumen_movimientos(movimientos: Iterable[Movimiento], formato: str | None = None) -> list[dict]:
    formato = formato or _CFG.app.fecha_vista_formato
    return [
        {
            "idx": m.indice,
            "fecha": formatear_fecha(m.fecha, formato),
            "importe": m.importe,
            "concepto": m.concepto,
        }
        for m in movimientos
    ]


def resumen_tickets(hechos: Iterable[Ticket]) -> list[dict]:
    out = []
    for i, t in enumerate(hechos):
        a = t.anotacion
        out.append({
            "idx": i,
            "filename": t.nombre,
            "fecha": a.fecha if a else None,
            "importe": a.importe if a else None,
            "comercio": a.comercio if a else None,
            "concepto": a.concepto if a else None,
        })
    return out


# ==========================================================
# Validacion de la respuesta
# ==========================================================
def _entero(valor: Any, campo: str) -> int:
    if isinstance(valor, bool):
        raise ValidacionError(f"{campo} no es un entero: {valor!r}")
    if isinstance(valor, Integral):
        return int(valor)
    if isinstance(valor, Real) and float(valor).is_integer():
        return int(valor)
    if isinstance(valor, str) and valor.strip().lstrip("-").isdigit():
        return int(valor.strip())
    raise ValidacionError(f"{campo} no es un entero: {valor!r}")


def _score(valor: Any) -> int:
    try:
        numero = float(valor)
    except (TypeError, ValueError):
        return 0
    if numero != numero:  # NaN
        return 0
    return max(0, min(100, int(round(numero))))


def _validar_entrada(
    crudo: Any,
    indices_mov: set[int],
    indices_tick: set[int],
    usados_mov: set[int],
    usados_tick: set[int],
) -> Emparejamiento:
    if not isinstance(crudo, dict):
        raise ValidacionError(f"entrada no es un objeto: {crudo!r}")
    im = _entero(crudo.get("movimiento_idx"), "movimiento_idx")
    it = _entero(crudo.get("ticket_idx"), "ticket_idx")
    if im not in indices_mov:
        raise ValidacionError(f"movimiento_idx {im} fuera de rango")
    if it not in indices_tick:
        raise ValidacionError(f"ticket_idx {it} fuera de rango")
    if im in usados_mov:
        raise ValidacionError(f"movimiento_idx {im} ya emparejado")
    if it in usados_tick:
        raise ValidacionError(f"ticket_idx {it} ya emparejado")
    return Emparejamiento(
        indice_movimiento=im,
        indice_ticket=it,
        score=_score(crudo.get("score")),
        razon=str(crudo.get("razon") or ""),
    )


def validar_emparejamientos(
    crudos: list,
    indices_mov: Iterable[int],
    indices_tick: Iterable[int],
) -> tuple[list[Emparejamiento], list[str]]:
    """Se queda con las entradas validas, 1 a 1 y dentro de rango. Gana la primera que reclama un indice."""
    indices_mov, indices_tick = set(indices_mov), set(indices_tick)
    usados_mov: set[int] = set()
    usados_tick: set[int] = set()
    validos: list[Emparejamiento] = []
    rechazos: list[str] = []

    for n, crudo in enumerate(crudos):
        try:
            e = _validar_entrada(crudo, indices_mov, indices_tick, usados_mov, usados_tick)
        except ValidacionError as err:
            log.warning("Match #%d descartado: %s", n, err)
            rechazos.append(f"#{n}: {err}")
            continue
        usados_mov.add(e.indice_movimiento)
        usados_tick.add(e.indice_ticket)
        validos.append(e)
    return validos, rechazos


# ==========================================================
# Estadisticas y resultado
# ==========================================================
def porcentaje_conciliacion(conciliados: int, total: int) -> int:
    if not total:
        return 0
    pct = Decimal(conciliados * 100) / Decimal(total)
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calcular_estadisticas(
    total: int,
    emparejamientos: list[Emparejamiento],
    sin_ticket: list[int],
    tickets_sin_movimiento: list[int],
) -> Estadisticas:
    conciliados = len(emparejamientos)
    return Estadisticas(
        total_movimientos=total,
        conciliados=conciliados,
        sin_ticket=len(sin_ticket),
        tickets_sin_movimiento=len(tickets_sin_movimiento),
        porcentaje=porcentaje_conciliacion(conciliados, total),
    )


def construir_resultado(
    respuesta: Any,
    indices_mov: list[int],
    indices_tick: list[int],
) -> ResultadoConciliacion:
    """Valida la respuesta del emparejador y recalcula los pendientes localmente.

    Las listas de pendientes que trae la respuesta se ignoran: se derivan de los
    matches validos y de los indices conocidos, de modo que las tres particiones
    cubren cada indice exactamente una vez.
    """
    if not isinstance(respuesta, dict):
        raise TransporteError(f"Respuesta del emparejador inesperada: {type(respuesta).__name__}")
    if "error" in respuesta and "matches" not in respuesta:
        raise TransporteError(f"El emparejador devolvió un error: {respuesta['error']}")
    crudos = respuesta.get("matches") or []
    if not isinstance(crudos, list):
        raise TransporteError("'matches' no es una lista")

    validos, rechazos = validar_emparejamientos(crudos, indices_mov, indices_tick)
    usados_mov = {e.indice_movimiento for e in validos}
    usados_tick = {e.indice_ticket for e in validos}
    sin_ticket = [i for i in indices_mov if i not in usados_mov]
    tickets_sin_mov = [i for i in indices_tick if i not in usados_tick]

    for clave, calculado in (
        ("movimientos_sin_ticket", sin_ticket),
        ("tickets_sin_movimiento", tickets_sin_mov),
    ):
        declarado = respuesta.get(clave)
        if isinstance(declarado, list) and sorted(map(str, declarado)) != sorted(map(str, calculado)):
            log.info("%s recalculado: %s (el emparejador informó %s)", clave, calculado, declarado)

    resumen = respuesta.get("resumen")
    if resumen is not None and not isinstance(resumen, str):
        resumen = str(resumen)

    return ResultadoConciliacion(
        emparejamientos=validos,
        movimientos_sin_ticket=sin_ticket,
        tickets_sin_movimiento=tickets_sin_mov,
        estadisticas=calcular_estadisticas(len(indices_mov), validos, sin_ticket, tickets_sin_mov),
        resumen=resumen,
        rechazos=rechazos,
    )


class Conciliador:
    """Cruza movimientos y tickets procesados a traves del emparejador externo.

    Una sola llamada por corrida, sin reintentos. Si la corrida falla, `resultado`
    sigue mostrando el de la ultima corrida exitosa.
    """

    def __init__(self, emparejador: Emparejador, formato_fecha: str | None = None):
        self._emparejador = emparejador
        self._formato_fecha = formato_fecha
        self._resultado: Optional[ResultadoConciliacion] = None

    @property
    def resultado(self) -> Optional[ResultadoConciliacion]:
        return self._resultado

    def olvidar(self) -> None:
        self._resultado = None

    def conciliar(self, movimientos: Iterable[Movimiento], tickets: Iterable[Ticket]) -> ResultadoConciliacion:
        movimientos = list(movimientos)
        hechos = tickets_hechos(tickets)
        if not hechos:
            raise NoListoError("Espera a que terminen de procesarse los tickets")

        log.info("Conciliando %d movimientos contra %d tickets", len(movimientos), len(hechos))
        respuesta = self._emparejador.emparejar(
            resumen_movimientos(movimientos, self._formato_fecha),
            resumen_tickets(hechos),
        )
        resultado = construir_resultado(
            respuesta,
            [m.indice for m in movimientos],
            list(range(len(hechos))),
        )

        self._resultado = resultado
        est = resultado.estadisticas
        log.info(
            "%d matches encontrados (%d%%), %d descartados",
            est.conciliados, est.porcentaje, len(resultado.rechazos),
        )
        return resultado
