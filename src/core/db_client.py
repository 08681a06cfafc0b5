"""SQLite database client wrapper with CRUD and conditional-update operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when the underlying store fails."""


class DuplicateRecordError(DatabaseError):
    """Raised when a write violates a unique index."""


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _validate_field_name(field: str) -> None:
    """Validate that a field name is a plain identifier."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", field):
        msg = f"Invalid field name: {field}"
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def format_timestamp(value: datetime) -> str:
    """Render a datetime as a fixed-width UTC ISO-8601 string.

    Fixed width keeps lexical order equal to chronological order, which the
    filter comparisons rely on. Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def serialize_value(value: Any) -> Any:  # noqa: ANN401
    """Convert a Python value into its stored representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    fk_fields = {"id", "donation_id", "cart_id"}

    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key in fk_fields or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


_COMPARISON_PATTERN = re.compile(
    r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(?:"((?:[^"\\]|\\.)*)"|'([^']*)')\s*$""",
)


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter.

    Double-quoted values may carry the escapes produced by ``sanitize_param``.
    """
    match = _COMPARISON_PATTERN.match(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op, double_quoted, single_quoted = match.groups()
    if double_quoted is not None:
        try:
            raw_value = json.loads(f'"{double_quoted}"')
        except json.JSONDecodeError as e:
            msg = f"Invalid filter syntax: {comparison}"
            raise ValueError(msg) from e
    else:
        raw_value = single_quoted

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", value
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_conditions = []
    or_params = []

    for part in split_filter(inner, "||"):
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def split_filter(filter_query: str, separator: str = "&&") -> list[str]:
    """Split a filter on a top-level separator.

    Separators inside parenthesized groups or quoted values are kept.
    """
    parts = []
    current = ""
    paren_depth = 0
    quote: str | None = None
    escaped = False

    for char in filter_query:
        current += char

        if quote:
            if escaped:
                escaped = False
            elif char == "\\" and quote == '"':
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in "\"'":
            quote = char
        elif char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1
        elif paren_depth == 0 and current.endswith(separator):
            parts.append(current[: -len(separator)].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = split_filter(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def _parse_record_id(record_id: str) -> int | None:
    """Return the integer primary key, or None when the id cannot exist."""
    if isinstance(record_id, str) and record_id.isdigit():
        return int(record_id)
    return None


def _build_set_clause(
    data: dict[str, Any],
    increments: dict[str, int] | None,
) -> tuple[str, list[Any]]:
    """Build a SET clause from plain assignments and atomic increments."""
    assignments = []
    values = []
    for key, val in data.items():
        _validate_field_name(key)
        assignments.append(f"{key} = ?")
        values.append(serialize_value(val))

    for key, delta in (increments or {}).items():
        _validate_field_name(key)
        assignments.append(f"{key} = {key} + ?")
        values.append(delta)

    return ", ".join(assignments), values


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA busy_timeout = 5000")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            conn = _db_connections.pop(cache_key, None)
            if conn is not None:
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
                )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema

    await schema.init_db(db_path=db_path)


def _rows_to_records(cursor: aiosqlite.Cursor, rows: list[Any]) -> list[dict[str, Any]]:
    columns = [description[0] for description in cursor.description]
    return [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        now = format_timestamp(datetime.now(UTC))
        payload = {"created": now, "updated": now, **data}

        columns = list(payload.keys())
        for column in columns:
            _validate_field_name(column)
        placeholders_str = ", ".join("?" for _ in columns)
        columns_str = ", ".join(columns)
        values = [serialize_value(payload[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        record_id = cursor.lastrowid
        result = await get_record(collection=collection, record_id=str(record_id))

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return result
    except aiosqlite.IntegrityError as e:
        await conn.rollback()
        logger.warning("create_record_conflict", extra={"collection": collection, "error": str(e)})
        msg = f"Duplicate record in {collection}: {e}"
        raise DuplicateRecordError(msg) from e
    except aiosqlite.OperationalError as e:
        if "no such table" in str(e):
            logger.error("Table not found", extra={"collection": collection})
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            raise DatabaseError(msg) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    pk = _parse_record_id(record_id)
    if pk is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (pk,))
        row = await cursor.fetchone()

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return _rows_to_records(cursor, [row])[0]
    except RecordNotFoundError:
        raise
    except Exception as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e


async def get_records(*, collection: str, record_ids: list[str]) -> list[dict[str, Any]]:
    """Fetch several records by ID in a single query. Unknown ids are omitted."""
    pks = sorted({pk for pk in (_parse_record_id(rid) for rid in record_ids) if pk is not None})
    if not pks:
        return []

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        placeholders = ", ".join("?" for _ in pks)
        query = f"SELECT * FROM {collection} WHERE id IN ({placeholders})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, pks)
        rows = await cursor.fetchall()

        records = _rows_to_records(cursor, list(rows))
        logger.debug("Batch retrieved records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:
        logger.error("get_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to get records from {collection}: {e}"
        raise DatabaseError(msg) from e


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    pk = _parse_record_id(record_id)
    if pk is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        set_clause, values = _build_set_clause({**data, "updated": datetime.now(UTC)}, None)
        values.append(pk)

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=record_id)
    except RecordNotFoundError:
        raise
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def update_record_where(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    filter_query: str,
    increments: dict[str, int] | None = None,
) -> dict[str, Any] | None:
    """Update a record only if it still matches ``filter_query``.

    The id match, the condition and the write happen in one UPDATE statement,
    which makes this usable as a compare-and-swap.

    Returns:
        The updated record, or None if the record exists but no longer matches.

    Raises:
        RecordNotFoundError: If the record does not exist.
    """
    pk = _parse_record_id(record_id)
    if pk is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        set_clause, values = _build_set_clause({**data, "updated": datetime.now(UTC)}, increments)
        where_clause, params = parse_filter(filter_query)
        where_sql = f"id = ? AND {where_clause}" if where_clause else "id = ?"

        query = f"UPDATE {collection} SET {set_clause} WHERE {where_sql}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [*values, pk, *params])
        await conn.commit()
        matched = cursor.rowcount
    except Exception as e:
        logger.error(
            "update_record_where_failed",
            extra={"collection": collection, "record_id": record_id, "error": str(e)},
        )
        msg = f"Failed to conditionally update record in {collection}: {e}"
        raise DatabaseError(msg) from e

    if matched == 0:
        # Raises RecordNotFoundError when the id is gone; otherwise the condition did not hold.
        await get_record(collection=collection, record_id=record_id)
        logger.info(
            "Conditional update skipped",
            extra={"collection": collection, "record_id": record_id, "filter_query": filter_query},
        )
        return None

    logger.info("Conditionally updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def update_records_where(
    *,
    collection: str,
    filter_query: str,
    data: dict[str, Any],
    increments: dict[str, int] | None = None,
) -> int:
    """Bulk update every record matching ``filter_query`` in a single statement.

    Returns:
        Number of records updated.
    """
    if not filter_query:
        msg = "Bulk update requires a filter"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        set_clause, values = _build_set_clause({**data, "updated": datetime.now(UTC)}, increments)
        where_clause, params = parse_filter(filter_query)

        query = f"UPDATE {collection} SET {set_clause} WHERE {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [*values, *params])
        await conn.commit()

        logger.info("Bulk updated records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount
    except Exception as e:
        logger.error("update_records_where_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to bulk update records in {collection}: {e}"
        raise DatabaseError(msg) from e


async def delete_records(*, collection: str, filter_query: str) -> int:
    """Delete every record matching ``filter_query`` in a single statement.

    Returns:
        Number of records deleted.
    """
    if not filter_query:
        msg = "Bulk delete requires a filter"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)
        query = f"DELETE FROM {collection} WHERE {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        await conn.commit()

        logger.info("Bulk deleted records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount
    except Exception as e:
        logger.error("delete_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to delete records from {collection}: {e}"
        raise DatabaseError(msg) from e


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination.

    ``sort`` accepts ``field``, ``-field`` (descending) or ``field ASC|DESC``.
    """
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        # Only allow: column_name [ASC|DESC] or -column_name
        safe_sort = "id ASC"
        if sort:
            sort_str = sort.strip()
            if sort_str.startswith("-"):
                sort_str = f"{sort_str[1:]} DESC"
            sort_pattern = re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", sort_str, re.IGNORECASE)
            if sort_pattern:
                safe_sort = f"{sort_str}, id ASC"
            else:
                logger.warning("Invalid sort parameter, using default", extra={"sort": sort})

        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {safe_sort} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        records = _rows_to_records(cursor, list(rows))
        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e


async def list_all_records(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
    batch_size: int = constants.MAX_PER_PAGE_LIMIT,
) -> list[dict[str, Any]]:
    """List every matching record, reading ``batch_size`` rows per query."""
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            page=page,
            per_page=batch_size,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        if len(batch) < batch_size:
            return records
        page += 1


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)

        if where_clause:
            query = f"SELECT * FROM {collection} WHERE {where_clause} ORDER BY id ASC LIMIT 1"  # noqa: S608 - collection is validated
        else:
            query = f"SELECT * FROM {collection} ORDER BY id ASC LIMIT 1"  # noqa: S608 - collection is validated
            params = []

        cursor = await conn.execute(query, params)
        row = await cursor.fetchone()

        if row is None:
            return None

        logger.debug("Retrieved first record", extra={"collection": collection})
        return _rows_to_records(cursor, [row])[0]
    except Exception as e:
        logger.error(
            "get_first_record_failed", extra={"collection": collection, "filter_query": filter_query, "error": str(e)}
        )
        msg = f"Failed to get first record from {collection}: {e}"
        raise DatabaseError(msg) from e
