"""Per-database SQL fragments used by the aggregation queries.

Aggregations are written as SQL text around a shared filter predicate.
The handful of constructs that differ between PostgreSQL and SQLite
(date bucketing, JSON name lookup, case-insensitive LIKE) are rendered
here so query templates stay dialect-neutral.
"""

from __future__ import annotations

from sqlalchemy.orm import Session


class SqlDialect:
    """PostgreSQL rendering; the default for production databases."""

    name = "postgresql"
    ilike = "ILIKE"

    def json_text(self, column: str, key: str) -> str:
        return f"{column}->>'{key}'"

    def month_key(self, column: str) -> str:
        return f"TO_CHAR(date_trunc('month', {column}), 'YYYY-MM')"

    def day(self, column: str) -> str:
        return f"CAST({column} AS DATE)"

    def day_key(self, column: str) -> str:
        return f"TO_CHAR({column}, 'YYYY-MM-DD')"

    def day_number(self, column: str) -> str:
        """Integer day count, usable as a RANGE window ordering key."""

        return f"({column} - DATE '1970-01-01')"

    def year(self, column: str) -> str:
        return f"CAST(EXTRACT(YEAR FROM {column}) AS INTEGER)"

    def quarter(self, column: str) -> str:
        return f"CAST(EXTRACT(QUARTER FROM {column}) AS INTEGER)"


class SqliteDialect(SqlDialect):
    name = "sqlite"
    # LIKE is case-insensitive for ASCII in SQLite.
    ilike = "LIKE"

    def json_text(self, column: str, key: str) -> str:
        return f"json_extract({column}, '$.{key}')"

    def month_key(self, column: str) -> str:
        return f"strftime('%Y-%m', {column})"

    def day(self, column: str) -> str:
        return f"date({column})"

    def day_key(self, column: str) -> str:
        return f"date({column})"

    def day_number(self, column: str) -> str:
        return f"CAST(julianday({column}) AS INTEGER)"

    def year(self, column: str) -> str:
        return f"CAST(strftime('%Y', {column}) AS INTEGER)"

    def quarter(self, column: str) -> str:
        return f"((CAST(strftime('%m', {column}) AS INTEGER) + 2) / 3)"


_DIALECTS: dict[str, SqlDialect] = {
    "postgresql": SqlDialect(),
    "sqlite": SqliteDialect(),
}


def dialect_for(db: Session) -> SqlDialect:
    """Pick the fragment renderer matching the session's bound database."""

    name = db.get_bind().dialect.name
    try:
        return _DIALECTS[name]
    except KeyError:
        raise ValueError(f"Unsupported database dialect: {name}") from None
