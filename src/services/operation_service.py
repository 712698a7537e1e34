"""
Operation lifecycle.

An operation starts as ``draft`` and moves between the seven statuses on
partner or administrator request; the core does not restrict transitions.
The first entry into ``submitted`` stamps ``submitted_at``; later entries
keep the original stamp. Every field write is normalized first, and partial
updates touch only the fields present in the request.
"""

from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy import exc as sa_exc

from database.repositories import OperationRepository, PartnerRepository
from domain.aggregates import Operation, OperationStatistics, OperationStatus
from domain.errors import NotFoundError, ReferentialError, ValidationError
from domain.normalization import normalize_enum
from domain.operation_fields import normalize_operation_payload

from .admin_service import AdminService
from .context import ServiceContext
from .logging_config import actor_context, get_logger

logger = get_logger(__name__, component="operations")

STATUS_FIELD = "status_operacao"


def parse_operation_status(value: Any) -> OperationStatus:
    """Explicit status request. Unknown values are a validation error."""
    if isinstance(value, OperationStatus):
        return value
    try:
        return OperationStatus.from_string(value)
    except ValueError as e:
        raise ValidationError(str(e), field=STATUS_FIELD) from e


class OperationService:
    """Loan operation intake, updates and status changes."""

    def __init__(self, ctx: ServiceContext, admins: Optional[AdminService] = None):
        self._ctx = ctx
        self._admins = admins or AdminService(ctx)

    def _operations(self) -> OperationRepository:
        return OperationRepository(self._ctx.store)

    async def create(self, partner_id: int, payload: Mapping[str, Any]) -> Operation:
        """
        Create an operation owned by a partner.

        An unrecognized initial status falls back to ``draft``.

        Raises:
            ValidationError: Malformed document slot.
            ReferentialError: The partner does not exist; nothing is written.
        """
        values = normalize_operation_payload(payload)
        status = OperationStatus(normalize_enum(
            payload.get(STATUS_FIELD), OperationStatus, OperationStatus.DRAFT.value
        ))

        exists = await self._ctx.run(
            lambda: PartnerRepository(self._ctx.store).exists(partner_id), "partners.exists"
        )
        if not exists:
            raise ReferentialError(
                f"Partner {partner_id} does not exist",
                details={"parceiro_id": partner_id},
            )

        try:
            operation_id = await self._ctx.run(
                lambda: self._operations().create(partner_id, values, status),
                "operations.create",
            )
        except sa_exc.IntegrityError as e:
            # Partner removed between the check and the insert
            raise ReferentialError(
                f"Partner {partner_id} does not exist",
                details={"parceiro_id": partner_id},
                diagnostic=str(e.orig),
            ) from e

        logger.info(
            "Operation created",
            extra={"extra_data": {
                "operation_id": operation_id,
                "partner_id": partner_id,
                "status": status.value,
            }},
        )
        return await self.get(operation_id)

    async def update(self, operation_id: int, partner_id: int, payload: Mapping[str, Any]) -> Operation:
        """
        Partial update by the owning partner.

        Only fields present in ``payload`` are normalized and written. A
        ``status_operacao`` key is applied like ``update_status``.

        Raises:
            NotFoundError: Operation absent or owned by another partner.
            ValidationError: Malformed field or unknown status.
        """
        await self.get(operation_id, partner_id)

        values = normalize_operation_payload(payload, partial=True)
        status = parse_operation_status(payload[STATUS_FIELD]) if STATUS_FIELD in payload else None

        if values:
            await self._ctx.run(
                lambda: self._operations().update_fields(operation_id, values),
                "operations.update_fields",
            )
            logger.info(
                "Operation updated",
                extra={"extra_data": {"operation_id": operation_id, "fields": sorted(values)}},
            )

        if status is not None:
            return await self.update_status(operation_id, status, actor_id=f"partner:{partner_id}")
        return await self.get(operation_id)

    async def update_status(self, operation_id: int, status: Any, actor_id: Optional[Any] = None) -> Operation:
        """
        Move an operation to another status.

        Raises:
            ValidationError: Unknown status.
            NotFoundError: Operation absent.
        """
        target = parse_operation_status(status)

        with actor_context(actor_id):
            current = await self.get(operation_id)

            updated = await self._ctx.run(
                lambda: self._operations().update_status(operation_id, target),
                "operations.update_status",
            )
            if not updated:
                raise NotFoundError("Operation", operation_id)

            logger.info(
                "Operation status changed",
                extra={"extra_data": {
                    "operation_id": operation_id,
                    "from": current.status_operacao.value,
                    "to": target.value,
                }},
            )
            return await self.get(operation_id)

    async def get(self, operation_id: int, partner_id: Optional[int] = None) -> Operation:
        """
        Load an operation, optionally scoped to its owner.

        Raises:
            NotFoundError: Absent, or not owned by ``partner_id``.
        """
        operation = await self._ctx.run(
            lambda: self._operations().get(operation_id), "operations.get"
        )
        if operation is None or (partner_id is not None and operation.parceiro_id != partner_id):
            raise NotFoundError("Operation", operation_id)
        return operation

    async def list_for_partner(self, partner_id: int) -> Tuple[List[Operation], OperationStatistics]:
        """Partner's operations, newest first, with dashboard statistics."""
        operations = await self._ctx.run(
            lambda: self._operations().list_for_partner(partner_id),
            "operations.list_for_partner",
        )
        return operations, OperationStatistics.from_operations(
            operations, commission_rate=self._ctx.lifecycle.commission_rate
        )

    async def list_all(self, admin_id: int, status: Optional[Any] = None) -> List[Operation]:
        """Every operation for the admin panel, optionally filtered by status."""
        await self._admins.require_admin(admin_id)
        target = parse_operation_status(status) if status is not None else None
        return await self._ctx.run(
            lambda: self._operations().list_all(target), "operations.list_all"
        )
