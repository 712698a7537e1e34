"""Transaction management for multi-statement store writes.

A ``StoreTransaction`` holds one pooled connection for its whole lifetime
and exposes the same ``query`` call as the store, so a repository can run
against either. Used where several statements must commit or roll back
together (partner promotion).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction
from sqlalchemy.sql import Executable

if TYPE_CHECKING:
    from database.store import QueryResult

logger = logging.getLogger(__name__)


class StoreTransaction:
    """
    Manages a database transaction with automatic commit/rollback.

    Usage:
        async with store.transaction() as tx:
            await tx.query(insert_statement)
            await tx.query("DELETE FROM ...", {...})
            # Auto-commits on success, auto-rollbacks on exception

        # Or with explicit transaction control:
        tx = StoreTransaction(engine)
        await tx.begin()
        try:
            await tx.query(...)
            await tx.commit()
        except Exception:
            await tx.rollback()
            raise
        finally:
            await tx.close()
    """

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._connection: Optional[AsyncConnection] = None
        self._transaction: Optional[AsyncTransaction] = None

    async def begin(self) -> "StoreTransaction":
        """Check out a connection and begin a transaction."""
        if self._transaction is not None:
            raise RuntimeError("Transaction already active")

        self._connection = await self._engine.connect()
        self._transaction = await self._connection.begin()
        logger.debug("Transaction started")
        return self

    async def query(
        self,
        statement: Union[str, Executable],
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> "QueryResult":
        """Run one statement inside the transaction."""
        from database.store import run_statement

        if self._connection is None or self._transaction is None:
            raise RuntimeError("No active transaction")
        return await run_statement(self._connection, statement, parameters)

    async def commit(self) -> None:
        """Commit the current transaction."""
        if self._transaction is None:
            raise RuntimeError("No active transaction to commit")

        await self._transaction.commit()
        self._transaction = None
        logger.debug("Transaction committed")

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        if self._transaction is None:
            return  # No-op if not active

        await self._transaction.rollback()
        self._transaction = None
        logger.debug("Transaction rolled back")

    async def close(self) -> None:
        """Return the connection to the pool."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    @property
    def is_active(self) -> bool:
        return self._transaction is not None

    async def __aenter__(self) -> "StoreTransaction":
        return await self.begin()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit the transaction context with auto commit/rollback."""
        try:
            if exc_type is not None:
                await self.rollback()
                logger.debug(f"Transaction rolled back due to: {exc_type.__name__}")
            else:
                await self.commit()
        finally:
            await self.close()

        # Don't suppress exceptions
        return False
