# cartstore/utils/logging.py
"""
Wspolna konfiguracja logowania.

    from cartstore.utils.logging import get_logger
    logger = get_logger(__name__)
"""
import logging
import sys
from functools import cache

from cartstore.utils.settings import LOG_LEVEL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_root_logger() -> None:
    root = logging.getLogger()

    #tylko raz, jesli ktos juz skonfigurowal handlery to nie ruszamy
    if root.handlers:
        return

    level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    logging.getLogger("celery").setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def safe_identity(value: str | None, max_length: int = 64) -> str:
    """
    Identity przychodzi z zewnatrz, wiec przed logowaniem
    usuwamy znaki nowej linii itp. (log injection) i przycinamy.
    """
    if not value:
        return "N/A"
    escaped = (
        str(value)
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )
    if len(escaped) <= max_length:
        return escaped
    return escaped[:max_length] + "..."
