"""
Promotion of a pre-registration into a partner account.

Steps:
1. Resolve the acting administrator.
2. Load the pre-registration (NotFoundError if absent).
3. Apply the rejected-record policy.
4. Check the fields a partner needs: full name, tax id, email.
5. Refuse when a partner already holds the tax id or the email.
6. Mint a temporary credential and hash it.
7. Insert the partner and delete the pre-registration in one transaction.

Every step that reads the store runs through the resilient executor; step 7
is a single resilient call, so a transient failure retries the whole
transaction after it was rolled back. The plaintext credential is returned
once in ``PromotionResult`` and is stored only when
``CredentialSettings.persist_temporary`` is enabled.
"""

from typing import Any, Dict, Optional

from sqlalchemy import exc as sa_exc

from database.repositories import (
    PartnerRepository,
    PreRegistrationRepository,
)
from domain.aggregates import PreRegistration, PreRegistrationStatus, PromotionResult
from domain.errors import (
    ConflictError,
    IncompleteRecordError,
    InvalidTransitionError,
    NotFoundError,
    ReconciliationError,
)
from resilience.faults import is_transient
from security.credentials import generate_temporary_credential

from .admin_service import AdminService
from .context import ServiceContext, unique_violation_field
from .logging_config import actor_context, get_logger

logger = get_logger(__name__, component="promotion")

COPIED_FIELDS = (
    "whatsapp", "razao_social", "cnpj", "cidade", "uf",
    "resp_tipo_cnpj", "resp_perfil_clientes", "resp_volume_indicacoes",
    "aceite_termos", "aceite_lgpd",
)


class PromotionService:
    """Converts pre-registrations into partner accounts."""

    def __init__(self, ctx: ServiceContext, admins: Optional[AdminService] = None):
        self._ctx = ctx
        self._admins = admins or AdminService(ctx)

    async def promote(
        self,
        admin_id: int,
        pre_registration_id: int,
        allow_rejected: Optional[bool] = None,
    ) -> PromotionResult:
        """
        Promote a pre-registration to a partner.

        Args:
            admin_id: Acting administrator.
            pre_registration_id: Record to promote.
            allow_rejected: Per-call override of
                ``LifecycleSettings.allow_rejected_promotion``.

        Returns:
            PromotionResult with the new partner id and the plaintext
            temporary credential.

        Raises:
            AccessDeniedError: Unknown administrator.
            NotFoundError: Pre-registration absent.
            InvalidTransitionError: Record is rejected and the policy forbids it.
            IncompleteRecordError: Name, tax id or email missing.
            ConflictError: A partner already holds the tax id or email.
            ReconciliationError: The pre-registration could not be removed;
                the partner insert was rolled back.
            RetriesExhaustedError: The store stayed unavailable.
        """
        with actor_context(f"admin:{admin_id}"):
            await self._admins.require_admin(admin_id)

            record = await self._ctx.run(
                lambda: PreRegistrationRepository(self._ctx.store).get(pre_registration_id),
                "pre_registrations.get",
            )
            if record is None:
                raise NotFoundError("Pre-registration", pre_registration_id)

            self._check_policy(record, allow_rejected)

            missing = record.missing_partner_fields()
            if missing:
                raise IncompleteRecordError(
                    f"Pre-registration is missing: {', '.join(missing)}",
                    missing_fields=missing,
                )

            await self._check_identity(record)

            temporary = generate_temporary_credential(self._ctx.credential_settings.temporary_length)
            senha_hash = await self._ctx.credentials.hash_async(temporary)
            values = self._partner_values(record, senha_hash, temporary)

            partner_id = await self._ctx.run(
                lambda: self._commit(record, values),
                "promotion.commit",
            )

            logger.info(
                "Pre-registration promoted to partner",
                extra={"extra_data": {
                    "pre_registration_id": record.id,
                    "partner_id": partner_id,
                    "previous_status": record.status_elegibilidade.value
                    if record.status_elegibilidade else None,
                }},
            )
            return PromotionResult(partner_id=partner_id, temporary_credential=temporary)

    def _check_policy(self, record: PreRegistration, allow_rejected: Optional[bool]) -> None:
        status = record.status_elegibilidade
        if status is PreRegistrationStatus.APPROVED:
            raise InvalidTransitionError(status, PreRegistrationStatus.APPROVED)

        allowed = self._ctx.lifecycle.allow_rejected_promotion if allow_rejected is None else allow_rejected
        if status is PreRegistrationStatus.REJECTED and not allowed:
            raise InvalidTransitionError(
                status,
                PreRegistrationStatus.APPROVED,
                "Rejected pre-registrations cannot be promoted",
            )

    async def _check_identity(self, record: PreRegistration) -> None:
        existing = await self._ctx.run(
            lambda: PartnerRepository(self._ctx.store).find_by_identity(
                cpf=record.cpf.strip(), email=record.email.strip()
            ),
            "partners.find_by_identity",
        )
        if existing is None:
            return

        field = "cpf" if existing.cpf == record.cpf.strip() else "email"
        raise ConflictError(
            f"Partner {existing.nome} (id {existing.id}) already uses this {field}",
            field=field,
            existing_id=existing.id,
        )

    def _partner_values(self, record: PreRegistration, senha_hash: str, temporary: str) -> Dict[str, Any]:
        values = {
            "nome": record.nome_completo.strip(),
            "cpf": record.cpf.strip(),
            "email": record.email.strip(),
            "senha": senha_hash,
            "senha_temp": temporary if self._ctx.credential_settings.persist_temporary else None,
            "status_elegibilidade": PreRegistrationStatus.APPROVED.value,
        }
        for name in COPIED_FIELDS:
            values[name] = getattr(record, name)
        return values

    async def _commit(self, record: PreRegistration, values: Dict[str, Any]) -> int:
        """Insert the partner and remove the pre-registration atomically."""
        async with self._ctx.store.transaction() as tx:
            try:
                partner_id = await PartnerRepository(tx).create(values)
            except sa_exc.IntegrityError as e:
                field = unique_violation_field(e, ("cpf", "email"))
                raise ConflictError(
                    "A partner with this identity was created concurrently",
                    field=field,
                    diagnostic=str(e.orig),
                ) from e

            try:
                deleted = await PreRegistrationRepository(tx).delete(record.id)
            except Exception as e:
                if is_transient(e):
                    raise
                logger.error(
                    "Pre-registration delete failed during promotion, rolling back",
                    extra={"extra_data": {"pre_registration_id": record.id}},
                )
                raise ReconciliationError(diagnostic=f"{type(e).__name__}: {e}") from e

            if deleted != 1:
                logger.error(
                    "Pre-registration vanished during promotion, rolling back",
                    extra={"extra_data": {"pre_registration_id": record.id, "deleted": deleted}},
                )
                raise ReconciliationError(
                    details={"pre_registration_id": record.id},
                    diagnostic=f"DELETE affected {deleted} rows",
                )

            return partner_id
