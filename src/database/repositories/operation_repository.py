"""Loan operation persistence.

Document slots are stored as JSON text and decoded on read. Status writes
stamp ``submitted_at`` in the same UPDATE, and only while it is still NULL.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func, insert, update

from database.models import OperationRecord, utcnow
from database.store import QueryRunner
from domain.aggregates import Operation, OperationStatus
from domain.operation_fields import documents_from_storage, documents_to_storage

_table = OperationRecord.__table__


class OperationRepository:
    """Single-statement access to the ``operations`` table."""

    def __init__(self, runner: QueryRunner):
        self._runner = runner

    async def get(self, operation_id: int) -> Optional[Operation]:
        result = await self._runner.query(
            "SELECT * FROM operations WHERE id = :id",
            {"id": operation_id},
        )
        row = result.first()
        return self._row_to_operation(row) if row else None

    async def list_for_partner(self, partner_id: int) -> List[Operation]:
        """Partner's operations, newest first."""
        result = await self._runner.query(
            "SELECT * FROM operations WHERE parceiro_id = :parceiro_id "
            "ORDER BY created_at DESC, id DESC",
            {"parceiro_id": partner_id},
        )
        return [self._row_to_operation(row) for row in result.rows]

    async def list_all(self, status: Optional[OperationStatus] = None) -> List[Operation]:
        """All operations, newest first, optionally filtered by status."""
        if status is None:
            result = await self._runner.query(
                "SELECT * FROM operations ORDER BY created_at DESC, id DESC"
            )
        else:
            result = await self._runner.query(
                "SELECT * FROM operations WHERE status_operacao = :status "
                "ORDER BY created_at DESC, id DESC",
                {"status": status.value},
            )
        return [self._row_to_operation(row) for row in result.rows]

    async def create(
        self,
        partner_id: int,
        values: Dict[str, Any],
        status: OperationStatus = OperationStatus.DRAFT,
    ) -> int:
        """
        Insert an operation from normalized field values.

        Raises:
            sqlalchemy.exc.IntegrityError: partner_id does not reference a partner.
        """
        now = utcnow()
        row = documents_to_storage(values)
        row.update({
            "parceiro_id": partner_id,
            "status_operacao": status.value,
            "created_at": now,
            "updated_at": now,
            "submitted_at": now if status is OperationStatus.SUBMITTED else None,
        })
        result = await self._runner.query(insert(_table).values(**row))
        return result.inserted_id

    async def update_fields(self, operation_id: int, values: Dict[str, Any]) -> int:
        """Write the given normalized fields, leaving every other column untouched."""
        row = documents_to_storage(values)
        row["updated_at"] = utcnow()
        result = await self._runner.query(
            update(_table).where(_table.c.id == operation_id).values(**row)
        )
        return result.rowcount

    async def update_status(self, operation_id: int, status: OperationStatus) -> int:
        """Set the status; entering ``submitted`` stamps ``submitted_at`` once."""
        now = utcnow()
        values: Dict[str, Any] = {"status_operacao": status.value, "updated_at": now}
        if status is OperationStatus.SUBMITTED:
            values["submitted_at"] = func.coalesce(_table.c.submitted_at, now)

        result = await self._runner.query(
            update(_table).where(_table.c.id == operation_id).values(**values)
        )
        return result.rowcount

    def _row_to_operation(self, row: Dict[str, Any]) -> Operation:
        return Operation.model_validate(documents_from_storage(row))
