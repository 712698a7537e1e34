"""Request/response access to the relational store.

``Store.query(statement, parameters)`` is the single entry point used by the
repositories. Each call checks out one pooled connection, runs one statement
in its own transaction and returns the rows or the affected-row count.
Callers never use it directly: repository methods are invoked through the
``ResilientExecutor``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql import Executable
from sqlalchemy.sql.dml import Insert

from database.transaction import StoreTransaction

logger = logging.getLogger(__name__)

Statement = Union[str, Executable]


@dataclass
class QueryResult:
    """
    Outcome of one statement.

    Attributes:
        rows: Result rows as dicts (empty for writes).
        rowcount: Rows affected by a write, -1 when the driver does not report it.
        inserted_id: Primary key of the inserted row for single-row inserts.
    """
    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = -1
    inserted_id: Optional[Any] = None

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any:
        row = self.first()
        if not row:
            return None
        return next(iter(row.values()))


class QueryRunner(Protocol):
    """Anything repositories can run statements on: a Store or a StoreTransaction."""

    async def query(
        self,
        statement: Statement,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> QueryResult:
        ...


async def run_statement(
    connection: AsyncConnection,
    statement: Statement,
    parameters: Optional[Mapping[str, Any]] = None,
) -> QueryResult:
    """Execute a statement on an open connection and collect its outcome."""
    if isinstance(statement, str):
        statement = text(statement)

    result = await connection.execute(statement, dict(parameters or {}))

    if result.returns_rows:
        rows = [dict(row) for row in result.mappings().all()]
        return QueryResult(rows=rows, rowcount=len(rows))

    inserted_id = None
    if isinstance(statement, Insert):
        primary_key = result.inserted_primary_key
        if primary_key:
            inserted_id = primary_key[0]

    return QueryResult(rowcount=result.rowcount, inserted_id=inserted_id)


class Store:
    """
    Store handle bound to an async engine.

    Usage:
        store = Store(engine)
        result = await store.query("SELECT * FROM partners WHERE id = :id", {"id": 1})

        async with store.transaction() as tx:
            await tx.query(...)
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def query(
        self,
        statement: Statement,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> QueryResult:
        """
        Run a single statement in its own transaction.

        Args:
            statement: SQL text with ``:name`` placeholders, or a Core statement.
            parameters: Bound parameters.

        Returns:
            QueryResult with rows or affected-row count.
        """
        async with self.engine.begin() as connection:
            return await run_statement(connection, statement, parameters)

    def transaction(self) -> StoreTransaction:
        """Multi-statement transaction holding one connection."""
        return StoreTransaction(self.engine)
