"""Named databases: ``connect`` registers a URL, ``get_db`` returns its DB."""

import logging
import threading
from typing import Callable, Union

from .db import DB

logger = logging.getLogger("rowbound")

_lock = threading.Lock()
_databases: dict[str, DB] = {}


def connect(database_url: Union[str, Callable[[], str]], name: str = "default") -> DB:
    """Register the database at ``database_url`` (or returned by calling it) under ``name``.

    A database previously registered under the same name is closed and replaced.
    """
    url = database_url() if callable(database_url) else database_url
    db = DB.from_url(url)
    with _lock:
        previous = _databases.get(name)
        _databases[name] = db
    if previous is not None:
        previous.close()
    logger.debug("Registered database %r (%s)", name, db.dialect.name)
    return db


def get_db(name: str = "default") -> DB:
    try:
        return _databases[name]
    except KeyError as error:
        raise ValueError(f"No connection configured with name=`{name}`") from error


def disconnect(name: str = "default") -> None:
    """Close and forget the database registered under ``name``."""
    with _lock:
        db = _databases.pop(name, None)
    if db is not None:
        db.close()


__all__ = ["connect", "get_db", "disconnect"]
