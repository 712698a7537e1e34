"""
Administrator accounts.

Every admin-initiated operation in the other services starts with
``require_admin``: an id that does not resolve to an administrator is
refused with ``AccessDeniedError``.
"""

from typing import Any, Mapping

from sqlalchemy import exc as sa_exc

from database.repositories import AdminRepository
from domain.aggregates import Admin
from domain.errors import AccessDeniedError, AuthenticationError, ConflictError

from .context import (
    ServiceContext,
    hash_credential,
    require_text,
    unique_violation_field,
    validate_email,
)
from .logging_config import get_logger

logger = get_logger(__name__, component="accounts")


class AdminService:
    """Registration, authentication and existence checks for administrators."""

    def __init__(self, ctx: ServiceContext):
        self._ctx = ctx

    def _admins(self) -> AdminRepository:
        return AdminRepository(self._ctx.store)

    async def register(self, payload: Mapping[str, Any]) -> Admin:
        """
        Create an administrator.

        Args:
            payload: ``nome``, ``email`` and ``senha``.

        Returns:
            The new administrator.

        Raises:
            ValidationError: Missing or malformed field.
            ConflictError: Email already registered.
        """
        nome = require_text(payload, "nome")
        email = validate_email(require_text(payload, "email"))
        senha = require_text(payload, "senha")

        existing = await self._ctx.run(
            lambda: self._admins().find_for_login(email), "admins.find_for_login"
        )
        if existing:
            raise ConflictError("Email already registered", field="email", existing_id=existing[0].id)

        senha_hash = await hash_credential(self._ctx.credentials, senha)
        try:
            admin_id = await self._ctx.run(
                lambda: self._admins().create(nome, email, senha_hash), "admins.create"
            )
        except sa_exc.IntegrityError as e:
            raise ConflictError(
                "Email already registered",
                field=unique_violation_field(e, ("email",)) or "email",
                diagnostic=str(e.orig),
            ) from e

        logger.info("Administrator registered", extra={"extra_data": {"admin_id": admin_id}})
        return await self.require_admin(admin_id)

    async def authenticate(self, email: str, senha: str) -> Admin:
        """
        Check an administrator's credentials.

        Raises:
            AuthenticationError: Unknown email or wrong password.
        """
        found = await self._ctx.run(
            lambda: self._admins().find_for_login(email or ""), "admins.find_for_login"
        )
        if not found or not await self._ctx.credentials.verify_async(senha, found[1]):
            logger.info("Administrator authentication failed")
            raise AuthenticationError()
        return found[0]

    async def require_admin(self, admin_id: Any) -> Admin:
        """
        Resolve the acting administrator.

        Raises:
            AccessDeniedError: The id is empty or unknown.
        """
        if admin_id is None:
            raise AccessDeniedError("Administrator id is required")

        admin = await self._ctx.run(lambda: self._admins().get(admin_id), "admins.get")
        if admin is None:
            logger.warning(
                "Access denied for unknown administrator",
                extra={"extra_data": {"admin_id": admin_id}},
            )
            raise AccessDeniedError(details={"admin_id": admin_id})
        return admin
