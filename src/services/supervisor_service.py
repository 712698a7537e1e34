"""
Supervisor accounts.

Supervisors oversee the partner base without changing it: they can sign in,
list partners and open a partner's record. Accounts are created by an
administrator.
"""

from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy import exc as sa_exc

from database.repositories import PartnerRepository, SupervisorRepository
from domain.aggregates import Partner, Supervisor
from domain.errors import AccessDeniedError, AuthenticationError, ConflictError, NotFoundError

from .admin_service import AdminService
from .context import (
    ServiceContext,
    hash_credential,
    require_text,
    unique_violation_field,
    validate_email,
)
from .logging_config import actor_context, get_logger

logger = get_logger(__name__, component="accounts")


class SupervisorService:
    """Supervisor registration, login and partner views."""

    def __init__(self, ctx: ServiceContext, admins: Optional[AdminService] = None):
        self._ctx = ctx
        self._admins = admins or AdminService(ctx)

    def _supervisors(self) -> SupervisorRepository:
        return SupervisorRepository(self._ctx.store)

    async def register(self, admin_id: int, payload: Mapping[str, Any]) -> Supervisor:
        """
        Create a supervisor on behalf of an administrator.

        Args:
            admin_id: Acting administrator.
            payload: ``nome``, ``email`` and ``senha``.

        Raises:
            AccessDeniedError: Unknown administrator.
            ValidationError: Missing or malformed field.
            ConflictError: Email already registered.
        """
        with actor_context(f"admin:{admin_id}"):
            await self._admins.require_admin(admin_id)

            nome = require_text(payload, "nome")
            email = validate_email(require_text(payload, "email"))
            senha = require_text(payload, "senha")

            existing = await self._ctx.run(
                lambda: self._supervisors().find_for_login(email), "supervisors.find_for_login"
            )
            if existing:
                raise ConflictError("Email already registered", field="email", existing_id=existing[0].id)

            senha_hash = await hash_credential(self._ctx.credentials, senha)
            try:
                supervisor_id = await self._ctx.run(
                    lambda: self._supervisors().create(nome, email, senha_hash), "supervisors.create"
                )
            except sa_exc.IntegrityError as e:
                raise ConflictError(
                    "Email already registered",
                    field=unique_violation_field(e, ("email",)) or "email",
                    diagnostic=str(e.orig),
                ) from e

            logger.info("Supervisor registered", extra={"extra_data": {"supervisor_id": supervisor_id}})
            return await self.require_supervisor(supervisor_id)

    async def authenticate(self, email: str, senha: str) -> Supervisor:
        """
        Check a supervisor's credentials.

        Raises:
            AuthenticationError: Unknown email or wrong password.
        """
        found = await self._ctx.run(
            lambda: self._supervisors().find_for_login(email or ""), "supervisors.find_for_login"
        )
        if not found or not await self._ctx.credentials.verify_async(senha, found[1]):
            logger.info("Supervisor authentication failed")
            raise AuthenticationError()
        return found[0]

    async def require_supervisor(self, supervisor_id: Any) -> Supervisor:
        """
        Resolve the acting supervisor.

        Raises:
            AccessDeniedError: The id is empty or unknown.
        """
        if supervisor_id is None:
            raise AccessDeniedError("Supervisor id is required")

        supervisor = await self._ctx.run(
            lambda: self._supervisors().get(supervisor_id), "supervisors.get"
        )
        if supervisor is None:
            logger.warning(
                "Access denied for unknown supervisor",
                extra={"extra_data": {"supervisor_id": supervisor_id}},
            )
            raise AccessDeniedError(details={"supervisor_id": supervisor_id})
        return supervisor

    async def list_partners(self, supervisor_id: int) -> Tuple[List[Partner], int]:
        """All partners, newest first, with the total count."""
        await self.require_supervisor(supervisor_id)
        partners = await self._ctx.run(
            lambda: PartnerRepository(self._ctx.store).list_all(), "partners.list_all"
        )
        return partners, len(partners)

    async def get_partner(self, supervisor_id: int, partner_id: int) -> Partner:
        """Raises NotFoundError when the partner does not exist."""
        await self.require_supervisor(supervisor_id)
        partner = await self._ctx.run(
            lambda: PartnerRepository(self._ctx.store).get(partner_id), "partners.get"
        )
        if partner is None:
            raise NotFoundError("Partner", partner_id)
        return partner
