"""
Partner accounts: self-registration, login, profile and admin views.

Partners created by promotion go through ``PromotionService``; this module
covers every other path. Partners are never deleted.
"""

from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy import exc as sa_exc

from database.repositories import PartnerRepository
from domain.aggregates import Partner
from domain.eligibility import evaluate_eligibility
from domain.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from domain.normalization import normalize_boolean, normalize_text

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

PROFILE_FIELDS = ("whatsapp", "razao_social", "cnpj", "cidade", "uf")
ANSWER_FIELDS = ("resp_tipo_cnpj", "resp_perfil_clientes", "resp_volume_indicacoes")


class PartnerService:
    """Partner account operations."""

    def __init__(self, ctx: ServiceContext, admins: Optional[AdminService] = None):
        self._ctx = ctx
        self._admins = admins or AdminService(ctx)

    def _partners(self) -> PartnerRepository:
        return PartnerRepository(self._ctx.store)

    async def register(self, payload: Mapping[str, Any]) -> Partner:
        """
        Self-register a partner.

        Args:
            payload: ``nome``, ``cpf``, ``email`` and ``senha`` are required;
                profile fields, qualifying answers and consent flags are optional.

        Returns:
            The new partner.

        Raises:
            ValidationError: Missing or malformed field.
            ConflictError: cpf or email already belongs to a partner.
        """
        nome = require_text(payload, "nome")
        cpf = require_text(payload, "cpf")
        email = validate_email(require_text(payload, "email"))
        senha = require_text(payload, "senha")

        existing = await self._ctx.run(
            lambda: self._partners().find_by_identity(cpf=cpf, email=email),
            "partners.find_by_identity",
        )
        if existing:
            field = "cpf" if existing.cpf == cpf else "email"
            raise ConflictError(
                f"A partner with this {field} is already registered",
                field=field,
                existing_id=existing.id,
            )

        values = {
            "nome": nome,
            "cpf": cpf,
            "email": email,
            "senha": await hash_credential(self._ctx.credentials, senha),
            "aceite_termos": normalize_boolean(payload.get("aceite_termos"), False),
            "aceite_lgpd": normalize_boolean(payload.get("aceite_lgpd"), False),
        }
        for name in PROFILE_FIELDS + ANSWER_FIELDS:
            values[name] = normalize_text(payload.get(name))
        values["status_elegibilidade"] = None
        if values["resp_tipo_cnpj"] or values["resp_perfil_clientes"]:
            values["status_elegibilidade"] = evaluate_eligibility(
                values["resp_tipo_cnpj"], values["resp_perfil_clientes"]
            ).value

        try:
            partner_id = await self._ctx.run(
                lambda: self._partners().create(values), "partners.create"
            )
        except sa_exc.IntegrityError as e:
            raise ConflictError(
                "A partner with this identity is already registered",
                field=unique_violation_field(e, ("cpf", "email")),
                diagnostic=str(e.orig),
            ) from e

        logger.info("Partner registered", extra={"extra_data": {"partner_id": partner_id}})
        return await self.get_profile(partner_id)

    async def authenticate(
        self,
        senha: str,
        cpf: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Partner:
        """
        Check a partner's credentials by tax id or email.

        Raises:
            AuthenticationError: Unknown identity or wrong password.
        """
        cpf, email = normalize_text(cpf), normalize_text(email)
        found = await self._ctx.run(
            lambda: self._partners().find_for_login(cpf=cpf, email=email),
            "partners.find_for_login",
        )
        if not found or not await self._ctx.credentials.verify_async(senha, found[1]):
            logger.info("Partner authentication failed")
            raise AuthenticationError()
        return found[0]

    async def get_profile(self, partner_id: int) -> Partner:
        """Raises NotFoundError when the partner does not exist."""
        partner = await self._ctx.run(lambda: self._partners().get(partner_id), "partners.get")
        if partner is None:
            raise NotFoundError("Partner", partner_id)
        return partner

    async def list_partners(self, admin_id: int) -> Tuple[List[Partner], int]:
        """All partners, newest first, with the total count."""
        await self._admins.require_admin(admin_id)
        partners = await self._ctx.run(lambda: self._partners().list_all(), "partners.list_all")
        return partners, len(partners)

    async def get_partner(self, admin_id: int, partner_id: int) -> Partner:
        await self._admins.require_admin(admin_id)
        return await self.get_profile(partner_id)

    async def rotate_credential(self, admin_id: int, partner_id: int, new_password: str) -> None:
        """
        Replace a partner's credential and clear any stored temporary one.

        Raises:
            AccessDeniedError: Unknown administrator.
            ValidationError: Empty or oversized password.
            NotFoundError: Unknown partner.
        """
        with actor_context(f"admin:{admin_id}"):
            await self._admins.require_admin(admin_id)
            if not normalize_text(new_password):
                raise ValidationError("New password is required", field="senha")

            senha_hash = await hash_credential(self._ctx.credentials, new_password)
            updated = await self._ctx.run(
                lambda: self._partners().update_credential(partner_id, senha_hash),
                "partners.update_credential",
            )
            if not updated:
                raise NotFoundError("Partner", partner_id)

            logger.info("Partner credential rotated", extra={"extra_data": {"partner_id": partner_id}})
