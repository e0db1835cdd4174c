"""
Process-wide logging setup for the ReWear backend.

Modules log through ``logging.getLogger(__name__)``; this only wires the root
handler once so repeated ``create_app`` calls (tests) do not stack handlers.
"""
import logging
import os
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger.

    Args:
        level: Level name; falls back to LOG_LEVEL env var, then INFO.
    """
    global _configured
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)

    # SQLAlchemy echoes every statement at INFO otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
