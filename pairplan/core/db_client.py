"""SQLite database client: async CRUD over the tables registered by feature modules.

Records are plain dicts. Integer primary and foreign keys come back as strings,
``datetime``/``time`` values are stored as ISO-8601 text, and lists and dicts
as JSON text.

Filters use a small expression syntax shared with the test double::

    couple_id = "7" && status != "abandoned" && title ~ "dish"

Sorts name one column, prefixed with ``-`` for descending order.
"""

import asyncio
import json
import logging
import re
from datetime import datetime, time
from pathlib import Path
from typing import Any

import aiosqlite

from pairplan.core.config import settings


logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_COMPARISON = re.compile(r"""^(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])(.*)\3$""")
_SQL_OPERATORS = {"=": "=", "!=": "!=", ">": ">", "<": "<", ">=": ">=", "<=": "<=", "~": "LIKE"}

_connections: dict[tuple[int, str], aiosqlite.Connection] = {}
_connections_lock = asyncio.Lock()


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in a filter expression."""
    return json.dumps(str(value))[1:-1]


def _require_identifier(name: str, kind: str = "collection") -> str:
    if not _IDENTIFIER.match(name):
        msg = f"Invalid {kind} name: {name}"
        raise ValueError(msg)
    return name


def _to_column_value(value: Any) -> Any:
    if isinstance(value, datetime | time):
        return value.isoformat()
    if isinstance(value, dict | list | tuple | set):
        return json.dumps(sorted(value) if isinstance(value, set) else value)
    return value


def _stringify_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Return ``id`` and ``*_id`` integers as strings for the domain models."""
    return {
        key: str(value) if isinstance(value, int) and (key == "id" or key.endswith("_id")) else value
        for key, value in record.items()
    }


def _row_id(record_id: str) -> int:
    if not str(record_id).isdigit():
        msg = f"Record not found: {record_id}"
        raise KeyError(msg)
    return int(record_id)


def _filter_value(raw: str, *, is_like: bool) -> str | int | float | bool:
    if is_like:
        escaped = raw.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"
    if raw.isdigit():
        return int(raw)
    if raw.lower() in ("true", "false"):
        return raw.lower() == "true"
    return raw


def parse_filter(filter_query: str) -> tuple[str, list[Any]]:
    """Translate a filter expression into a SQL WHERE clause and its parameters."""
    if not filter_query.strip():
        return "", []

    conditions: list[str] = []
    params: list[Any] = []
    for term in (part.strip() for part in filter_query.split("&&")):
        match = _COMPARISON.match(term)
        if not match:
            msg = f"Invalid filter syntax: {term}"
            raise ValueError(msg)
        field, op, _, raw = match.groups()
        sql_op = _SQL_OPERATORS[op]
        condition = f"{_require_identifier(field, 'field')} {sql_op} ?"
        if sql_op == "LIKE":
            condition += " ESCAPE '\\'"
        conditions.append(condition)
        params.append(_filter_value(raw, is_like=sql_op == "LIKE"))

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate ``field`` / ``-field`` into an ORDER BY clause."""
    sort = sort.strip()
    if not sort:
        return "id ASC"
    descending = sort.startswith("-")
    field = _require_identifier(sort.lstrip("-+"), "sort field")
    return f"{field} {'DESC' if descending else 'ASC'}, id ASC"


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    return Path(db_path or settings.sqlite_db_path).resolve()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or open the cached connection for the running loop and database path."""
    path = get_db_path(db_path)
    cache_key = (id(asyncio.get_running_loop()), str(path))

    async with _connections_lock:
        conn = _connections.get(cache_key)
        if conn is not None:
            return conn

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(path))
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        _connections[cache_key] = conn

        logger.info("Opened SQLite connection", extra={"db_path": str(path)})
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached connection for the running loop and database path, if any."""
    path = get_db_path(db_path)
    cache_key = (id(asyncio.get_running_loop()), str(path))

    async with _connections_lock:
        conn = _connections.pop(cache_key, None)
        if conn is None:
            return
        try:
            await conn.close()
        except aiosqlite.Error as e:
            logger.warning("Error closing SQLite connection", extra={"db_path": str(path), "error": str(e)})
            return
        logger.info("Closed SQLite connection", extra={"db_path": str(path)})


async def init_db(*, db_path: str | None = None) -> None:
    """Create every table and index declared by the registered modules."""
    from pairplan.core.module_registry import get_all_indexes, get_all_table_schemas  # noqa: PLC0415

    conn = await get_connection(db_path=db_path)
    schemas = get_all_table_schemas()
    for statement in [*schemas.values(), *get_all_indexes()]:
        await conn.execute(statement)
    await conn.commit()
    logger.info("Database schema initialized", extra={"tables": sorted(schemas)})


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _require_identifier(collection)
    if not data:
        msg = "Empty record payload"
        raise ValueError(msg)

    columns = ", ".join(_require_identifier(key, "field") for key in data)
    placeholders = ", ".join("?" for _ in data)
    query = f"INSERT INTO {collection} ({columns}) VALUES ({placeholders})"  # noqa: S608 - identifiers are validated

    try:
        conn = await get_connection()
        cursor = await conn.execute(query, [_to_column_value(value) for value in data.values()])
        await conn.commit()
        record_id = str(cursor.lastrowid)
    except aiosqlite.OperationalError as e:
        if "no such table" in str(e):
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            raise RuntimeError(msg) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise RuntimeError(msg) from e
    except aiosqlite.Error as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise RuntimeError(msg) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising KeyError if not found."""
    _require_identifier(collection)
    row_id = _row_id(record_id)

    try:
        conn = await get_connection()
        cursor = await conn.execute(f"SELECT * FROM {collection} WHERE id = ?", (row_id,))  # noqa: S608
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise RuntimeError(msg) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)
    return _stringify_ids(dict(row))


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the stored result."""
    _require_identifier(collection)
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)
    row_id = _row_id(record_id)

    assignments = ", ".join(f"{_require_identifier(key, 'field')} = ?" for key in data)
    values = [_to_column_value(value) for value in data.values()]

    try:
        conn = await get_connection()
        cursor = await conn.execute(
            f"UPDATE {collection} SET {assignments} WHERE id = ?",  # noqa: S608 - identifiers are validated
            [*values, row_id],
        )
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise RuntimeError(msg) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting and pagination."""
    _require_identifier(collection)
    where_clause, params = parse_filter(filter_query)
    where = f"WHERE {where_clause}" if where_clause else ""
    query = f"SELECT * FROM {collection} {where} ORDER BY {parse_sort(sort)} LIMIT ? OFFSET ?"  # noqa: S608

    try:
        conn = await get_connection()
        cursor = await conn.execute(query, [*params, per_page, (page - 1) * per_page])
        rows = await cursor.fetchall()
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise RuntimeError(msg) from e

    logger.debug("Listed records", extra={"collection": collection, "count": len(rows)})
    return [_stringify_ids(dict(row)) for row in rows]

