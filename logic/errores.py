from __future__ import annotations


class ConciliadorError(Exception):
    """Base de los errores propios del conciliador."""


class ConfiguracionError(ConciliadorError, ValueError):
    """Falta un mapeo obligatorio (p.ej. la columna de importe)."""


class ValidacionError(ConciliadorError, ValueError):
    """Entrada del emparejador fuera de rango o ya reclamada. Se descarta, no se propaga."""


class TransporteError(ConciliadorError):
    """Servicio externo inalcanzable o respuesta imposible de interpretar."""


class NoListoError(ConciliadorError):
    """Conciliacion pedida sin ningun ticket procesado."""


class TransicionInvalidaError(ConciliadorError):
    """Cambio de estado de ticket no permitido (los estados finales no se abandonan)."""
