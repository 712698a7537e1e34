"""
Pre-registration lifecycle.

States: ``pre-approved`` and ``rejected`` while the record exists; ``approved``
is reached only through promotion, which removes the record. The
status-update path therefore accepts ``rejected`` alone.
"""

from typing import Any, List, Mapping, Optional, Tuple

from database.repositories import PartnerRepository, PreRegistrationRepository
from domain.aggregates import PreRegistration, PreRegistrationStatus, PromotionResult
from domain.eligibility import evaluate_eligibility
from domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from domain.normalization import normalize_boolean, normalize_text

from .admin_service import AdminService
from .context import ServiceContext, require_text, validate_email
from .logging_config import actor_context, get_logger
from .promotion_service import PromotionService

logger = get_logger(__name__, component="pre_registration")

ANSWER_FIELDS = ("resp_tipo_cnpj", "resp_perfil_clientes", "resp_volume_indicacoes")
IDENTITY_FIELDS = ("cpf", "whatsapp", "razao_social", "cnpj", "cidade", "uf")


class PreRegistrationService:
    """Creation, review and promotion of screening submissions."""

    def __init__(
        self,
        ctx: ServiceContext,
        admins: Optional[AdminService] = None,
        promotion: Optional[PromotionService] = None,
    ):
        self._ctx = ctx
        self._admins = admins or AdminService(ctx)
        self._promotion = promotion or PromotionService(ctx, self._admins)

    def _records(self) -> PreRegistrationRepository:
        return PreRegistrationRepository(self._ctx.store)

    async def create(self, payload: Mapping[str, Any]) -> PreRegistration:
        """
        Store a screening submission.

        The initial status comes from ``evaluate_eligibility``.

        Raises:
            ValidationError: Missing qualifying answer, blank name or bad email.
            ConflictError: cpf/cnpj already used by a pre-registration or partner.
        """
        values = {name: require_text(payload, name) for name in ANSWER_FIELDS}

        if "nome_completo" in payload:
            values["nome_completo"] = require_text(payload, "nome_completo", "Full name")
        values["email"] = validate_email(normalize_text(payload.get("email")))
        for name in IDENTITY_FIELDS:
            values[name] = normalize_text(payload.get(name))
        values["aceite_termos"] = normalize_boolean(payload.get("aceite_termos"), False)
        values["aceite_lgpd"] = normalize_boolean(payload.get("aceite_lgpd"), False)

        await self._check_documents(values.get("cpf"), values.get("cnpj"))

        status = evaluate_eligibility(values["resp_tipo_cnpj"], values["resp_perfil_clientes"])
        values["status_elegibilidade"] = status.value

        record_id = await self._ctx.run(
            lambda: self._records().create(values), "pre_registrations.create"
        )
        logger.info(
            "Pre-registration created",
            extra={"extra_data": {"pre_registration_id": record_id, "status": status.value}},
        )
        return await self._load(record_id)

    async def _check_documents(self, cpf: Optional[str], cnpj: Optional[str]) -> None:
        if not cpf and not cnpj:
            return

        duplicate = await self._ctx.run(
            lambda: self._records().find_by_document(cpf=cpf, cnpj=cnpj),
            "pre_registrations.find_by_document",
        )
        if duplicate:
            field = "cpf" if cpf and duplicate.cpf == cpf else "cnpj"
            raise ConflictError(
                f"A pre-registration with this {field} already exists",
                field=field,
                existing_id=duplicate.id,
            )

        partner = await self._ctx.run(
            lambda: PartnerRepository(self._ctx.store).find_by_document(cpf=cpf, cnpj=cnpj),
            "partners.find_by_document",
        )
        if partner:
            field = "cpf" if cpf and partner.cpf == cpf else "cnpj"
            raise ConflictError(
                f"A partner with this {field} already exists",
                field=field,
                existing_id=partner.id,
            )

    async def list(self, admin_id: int) -> Tuple[List[PreRegistration], int]:
        """
        All pre-registrations, newest first, with the total count.

        Records stored without a status get one computed from their answers,
        and it is persisted.
        """
        await self._admins.require_admin(admin_id)
        records = await self._ctx.run(lambda: self._records().list_all(), "pre_registrations.list_all")

        for record in records:
            if record.status_elegibilidade is not None:
                continue
            status = evaluate_eligibility(record.resp_tipo_cnpj, record.resp_perfil_clientes)
            await self._ctx.run(
                lambda: self._records().update_status(record.id, status.value),
                "pre_registrations.update_status",
            )
            record.status_elegibilidade = status
            logger.debug(f"Backfilled status of pre-registration {record.id}: {status.value}")

        return records, len(records)

    async def get(self, admin_id: int, pre_registration_id: int) -> PreRegistration:
        await self._admins.require_admin(admin_id)
        return await self._load(pre_registration_id)

    async def update_status(self, admin_id: int, pre_registration_id: int, status: Any) -> PreRegistration:
        """
        Admin status change. Only ``rejected`` is accepted here.

        Raises:
            ValidationError: Unknown status, or ``approved``/``pre-approved``
                requested (approval happens through promotion).
            NotFoundError: Record absent.
            InvalidTransitionError: Record already approved.
        """
        with actor_context(f"admin:{admin_id}"):
            await self._admins.require_admin(admin_id)
            target = self._parse_status(status)

            record = await self._load(pre_registration_id)
            current = record.status_elegibilidade
            if current is PreRegistrationStatus.APPROVED:
                raise InvalidTransitionError(current, target)

            if current is not PreRegistrationStatus.REJECTED:
                updated = await self._ctx.run(
                    lambda: self._records().update_status(pre_registration_id, target.value),
                    "pre_registrations.update_status",
                )
                if not updated:
                    raise NotFoundError("Pre-registration", pre_registration_id)

            logger.info(
                "Pre-registration status changed",
                extra={"extra_data": {
                    "pre_registration_id": pre_registration_id,
                    "from": current.value if current else None,
                    "to": target.value,
                }},
            )
            record.status_elegibilidade = target
            return record

    async def reject(self, admin_id: int, pre_registration_id: int) -> PreRegistration:
        return await self.update_status(admin_id, pre_registration_id, PreRegistrationStatus.REJECTED)

    async def promote(
        self,
        admin_id: int,
        pre_registration_id: int,
        allow_rejected: Optional[bool] = None,
    ) -> PromotionResult:
        """Convert the record into a partner. See ``PromotionService.promote``."""
        return await self._promotion.promote(admin_id, pre_registration_id, allow_rejected)

    async def _load(self, pre_registration_id: int) -> PreRegistration:
        record = await self._ctx.run(
            lambda: self._records().get(pre_registration_id), "pre_registrations.get"
        )
        if record is None:
            raise NotFoundError("Pre-registration", pre_registration_id)
        return record

    @staticmethod
    def _parse_status(status: Any) -> PreRegistrationStatus:
        try:
            target = PreRegistrationStatus.from_string(getattr(status, "value", status))
        except ValueError as e:
            raise ValidationError(str(e), field="status_elegibilidade") from e

        if target is PreRegistrationStatus.APPROVED:
            raise ValidationError(
                "Approval happens only through promotion",
                field="status_elegibilidade",
            )
        if target is not PreRegistrationStatus.REJECTED:
            raise ValidationError(
                f"Status cannot be set to {target.value}",
                field="status_elegibilidade",
            )
        return target
