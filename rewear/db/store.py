"""
psycopg-backed implementation of the relational store contract.

Tables and columns are composed with psycopg.sql identifiers; values always
travel as bound parameters. JSON columns are wrapped so Python lists and dicts
land as jsonb rather than Postgres arrays.
"""

from collections.abc import Mapping
from typing import Any

from psycopg import sql
from psycopg.types.json import Jsonb

from rewear.db.helpers import fetch_all, fetch_one, with_db_retry
from rewear.infrastructure.observability.logging import get_logger
from rewear.services.contracts import RecordNotFoundError, StoreError

logger = get_logger(__name__)

JSON_COLUMNS: dict[str, frozenset[str]] = {
    "clothing_items": frozenset({"images"}),
    "users_profiles": frozenset({"location"}),
}


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresStore:
    """Relational store over the pooled Supabase Postgres connection."""

    def __init__(self, schema: str = "public"):
        self.schema = schema

    def _table(self, table: str) -> sql.Identifier:
        return sql.Identifier(self.schema, table)

    def _adapt(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        json_columns = JSON_COLUMNS.get(table, frozenset())
        return {
            column: Jsonb(value) if column in json_columns and value is not None else value
            for column, value in row.items()
        }

    @staticmethod
    def _where(key: Mapping[str, Any]) -> sql.Composable:
        return sql.SQL(" AND ").join(
            sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder(column))
            for column in key
        )

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def fetch_one(self, table: str, key: Mapping[str, Any]) -> dict[str, Any]:
        if not key:
            raise StoreError("fetch_one requires a key", operation="fetch_one", recoverable=False)

        query = sql.SQL("SELECT * FROM {} WHERE {} LIMIT 1").format(
            self._table(table), self._where(key)
        )
        row = await fetch_one(query, dict(key))
        if row is None:
            raise RecordNotFoundError(table, key)
        return row

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def fetch_all(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        *,
        contains: Mapping[str, str] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        parts = [sql.SQL("SELECT * FROM {}").format(self._table(table))]
        params: dict[str, Any] = dict(filters or {})

        conditions = [self._where(params)] if params else []
        for column, text in (contains or {}).items():
            placeholder = f"_contains_{column}"
            conditions.append(
                sql.SQL("{} ILIKE {}").format(sql.Identifier(column), sql.Placeholder(placeholder))
            )
            params[placeholder] = f"%{_escape_like(text)}%"

        if conditions:
            parts.append(sql.SQL("WHERE {}").format(sql.SQL(" AND ").join(conditions)))
        if order_by:
            direction = sql.SQL("DESC" if descending else "ASC")
            parts.append(sql.SQL("ORDER BY {} {}").format(sql.Identifier(order_by), direction))
        if limit is not None:
            parts.append(sql.SQL("LIMIT {}").format(sql.Placeholder("_limit")))
            params["_limit"] = limit
        if offset is not None:
            parts.append(sql.SQL("OFFSET {}").format(sql.Placeholder("_offset")))
            params["_offset"] = offset

        return await fetch_all(sql.SQL(" ").join(parts), params)

    # Not retried: inserts and procedure calls are not idempotent
    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        values = self._adapt(table, row)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            self._table(table),
            sql.SQL(", ").join(sql.Identifier(column) for column in values),
            sql.SQL(", ").join(sql.Placeholder(column) for column in values),
        )
        stored = await fetch_one(query, values)
        if stored is None:
            raise StoreError(f"Insert into {table} returned no row", operation="insert")

        logger.debug("Row inserted", table=table, row_id=str(stored.get("id")))
        return stored

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def update(
        self, table: str, key: Mapping[str, Any], patch: Mapping[str, Any]
    ) -> dict[str, Any]:
        if not patch:
            return await self.fetch_one(table, key)

        values = {f"set_{column}": value for column, value in self._adapt(table, patch).items()}
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder(f"set_{column}"))
            for column in patch
        )
        query = sql.SQL("UPDATE {} SET {} WHERE {} RETURNING *").format(
            self._table(table), assignments, self._where(key)
        )
        stored = await fetch_one(query, {**values, **dict(key)})
        if stored is None:
            raise RecordNotFoundError(table, key)
        return stored

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Any:
        arguments = sql.SQL(", ").join(
            sql.SQL("{} => {}").format(sql.Identifier(arg), sql.Placeholder(arg)) for arg in args
        )
        query = sql.SQL("SELECT {}({}) AS result").format(
            sql.Identifier(self.schema, name), arguments
        )
        row = await fetch_one(query, dict(args))
        return row["result"] if row else None


# Global store instance
postgres_store = PostgresStore()
