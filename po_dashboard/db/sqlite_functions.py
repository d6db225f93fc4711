"""PostgreSQL string helpers registered on SQLite connections.

Category filtering relies on ``split_part``; SQLite has no built-in for it,
so engines pointing at SQLite (tests, local demos) get a Python version
installed on every new DBAPI connection.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.engine import Engine


def split_part(value: str | None, delimiter: str | None, index: int | None) -> str | None:
    """Return the 1-based ``index``-th field of ``value``; '' when out of range."""

    if value is None or delimiter is None or index is None:
        return None
    parts = value.split(delimiter)
    if 0 < index <= len(parts):
        return parts[index - 1]
    return ""


def install_sqlite_functions(engine: Engine) -> None:
    """Register helper SQL functions on each connection the engine opens."""

    @event.listens_for(engine, "connect")
    def _register(dbapi_connection, connection_record) -> None:  # noqa: ANN001
        dbapi_connection.create_function("split_part", 3, split_part, deterministic=True)
