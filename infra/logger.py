import logging
from typing import Optional


_handler: Optional[logging.Handler] = None


def get_logger(name: str = "conciliador") -> logging.Logger:
    """Logger del proyecto. Los nombres se cuelgan de `conciliador` y comparten un unico handler."""
    global _handler
    root = logging.getLogger("conciliador")
    if _handler is None:
        root.setLevel(logging.INFO)

        ch = logging.StreamHandler()
        ch.setLevel(logging.INFO)
        fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        ch.setFormatter(fmt)
        root.addHandler(ch)

        _handler = ch

    if name == "conciliador" or name.startswith("conciliador."):
        return logging.getLogger(name)
    return root.getChild(name)
