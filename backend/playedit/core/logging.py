"""
Process-wide logging setup.

Modules log through ``logging.getLogger(__name__)``; this is called once
from the app entry point.
"""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the root logger at *level*."""
    root = logging.getLogger()
    if not any(getattr(h, "_playedit", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._playedit = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level.upper())
