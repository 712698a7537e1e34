"""Tests for promoting pre-registrations into partners."""

import logging

import pytest
from sqlalchemy import exc as sa_exc

from config.settings import CredentialSettings, LifecycleSettings
from database.repositories import PartnerRepository, PreRegistrationRepository
from domain.errors import (
    AccessDeniedError,
    ConflictError,
    IncompleteRecordError,
    InvalidTransitionError,
    NotFoundError,
    ReconciliationError,
)
from services import PromotionService, ServiceContext


async def _count(store, table):
    result = await store.query(f"SELECT COUNT(*) AS n FROM {table}")
    return result.scalar()


@pytest.fixture
async def candidate(pre_registration_service, pre_registration_payload):
    return await pre_registration_service.create(pre_registration_payload)


@pytest.fixture
async def rejected_candidate(pre_registration_service, pre_registration_payload):
    pre_registration_payload["resp_tipo_cnpj"] = "NAO"
    return await pre_registration_service.create(pre_registration_payload)


def _context(ctx, **changes):
    values = {
        "store": ctx.store,
        "executor": ctx.executor,
        "credentials": ctx.credentials,
        "credential_settings": ctx.credential_settings,
        "lifecycle": ctx.lifecycle,
    }
    values.update(changes)
    return ServiceContext(**values)


class TestPromote:

    @pytest.mark.asyncio
    async def test_creates_partner_and_removes_record(self, promotion_service, partner_service, store, admin, candidate):
        result = await promotion_service.promote(admin.id, candidate.id)

        assert result.partner_id > 0
        assert len(result.temporary_credential) == 8
        assert await PreRegistrationRepository(store).get(candidate.id) is None

        partner = await partner_service.get_profile(result.partner_id)
        assert partner.nome == "Carla Candidata"
        assert partner.cpf == "555.666.777-88"
        assert partner.email == "carla@exemplo.com.br"
        assert partner.cnpj == "12.345.678/0001-90"
        assert partner.cidade == "Campinas"
        assert partner.resp_volume_indicacoes == "6-20"
        assert partner.aceite_lgpd is True
        assert partner.status_elegibilidade == "approved"
        assert partner.senha_temp is None

    @pytest.mark.asyncio
    async def test_temporary_credential_authenticates(self, promotion_service, partner_service, admin, candidate):
        result = await promotion_service.promote(admin.id, candidate.id)

        partner = await partner_service.authenticate(result.temporary_credential, cpf="555.666.777-88")
        assert partner.id == result.partner_id

    @pytest.mark.asyncio
    async def test_credential_not_logged(self, promotion_service, admin, candidate, caplog):
        with caplog.at_level(logging.DEBUG, logger="services"):
            result = await promotion_service.promote(admin.id, candidate.id)

        assert result.temporary_credential not in caplog.text
        assert result.temporary_credential not in repr(result)

    @pytest.mark.asyncio
    async def test_persisted_temporary_credential(self, ctx, store, admin, candidate):
        settings = CredentialSettings(bcrypt_rounds=4, persist_temporary=True, temporary_length=12)
        service = PromotionService(_context(ctx, credential_settings=settings))

        result = await service.promote(admin.id, candidate.id)
        partner = await PartnerRepository(store).get(result.partner_id)

        assert len(result.temporary_credential) == 12
        assert partner.senha_temp == result.temporary_credential
        assert "senha_temp" not in partner.model_dump()

    @pytest.mark.asyncio
    async def test_unknown_admin(self, promotion_service, store, candidate):
        with pytest.raises(AccessDeniedError):
            await promotion_service.promote(999, candidate.id)
        assert await _count(store, "partners") == 0

    @pytest.mark.asyncio
    async def test_unknown_record(self, promotion_service, admin):
        with pytest.raises(NotFoundError):
            await promotion_service.promote(admin.id, 31337)

    @pytest.mark.asyncio
    async def test_incomplete_record(self, promotion_service, pre_registration_service, store, admin):
        record = await pre_registration_service.create({
            "resp_tipo_cnpj": "SIM",
            "resp_perfil_clientes": "SIM",
            "resp_volume_indicacoes": "1-5",
            "nome_completo": "Sem Documento",
        })

        with pytest.raises(IncompleteRecordError) as exc_info:
            await promotion_service.promote(admin.id, record.id)

        assert exc_info.value.missing_fields == ["cpf", "email"]
        assert await PreRegistrationRepository(store).get(record.id) is not None

    @pytest.mark.asyncio
    async def test_second_promotion_fails(self, promotion_service, admin, candidate):
        await promotion_service.promote(admin.id, candidate.id)
        with pytest.raises(NotFoundError):
            await promotion_service.promote(admin.id, candidate.id)


class TestPromoteConflicts:

    @pytest.mark.asyncio
    async def test_cpf_taken(self, promotion_service, partner_service, store, admin, candidate):
        holder = await partner_service.register({
            "nome": "Outro Parceiro",
            "cpf": candidate.cpf,
            "email": "outro@exemplo.com.br",
            "senha": "segredo",
        })

        with pytest.raises(ConflictError) as exc_info:
            await promotion_service.promote(admin.id, candidate.id)

        assert exc_info.value.field == "cpf"
        assert exc_info.value.existing_id == holder.id
        assert "Outro Parceiro" in exc_info.value.message
        assert await PreRegistrationRepository(store).get(candidate.id) is not None
        assert await _count(store, "partners") == 1

    @pytest.mark.asyncio
    async def test_email_taken(self, promotion_service, partner_service, store, admin, candidate):
        holder = await partner_service.register({
            "nome": "Outro Parceiro",
            "cpf": "000.000.000-01",
            "email": candidate.email,
            "senha": "segredo",
        })

        with pytest.raises(ConflictError) as exc_info:
            await promotion_service.promote(admin.id, candidate.id)

        assert exc_info.value.field == "email"
        assert exc_info.value.existing_id == holder.id
        assert await PreRegistrationRepository(store).get(candidate.id) is not None


class TestRejectedPolicy:

    @pytest.mark.asyncio
    async def test_allowed_by_default(self, promotion_service, admin, rejected_candidate):
        result = await promotion_service.promote(admin.id, rejected_candidate.id)
        assert result.partner_id > 0

    @pytest.mark.asyncio
    async def test_forbidden_by_settings(self, ctx, store, admin, rejected_candidate):
        service = PromotionService(_context(ctx, lifecycle=LifecycleSettings(allow_rejected_promotion=False)))

        with pytest.raises(InvalidTransitionError):
            await service.promote(admin.id, rejected_candidate.id)
        assert await _count(store, "partners") == 0

        result = await service.promote(admin.id, rejected_candidate.id, allow_rejected=True)
        assert result.partner_id > 0

    @pytest.mark.asyncio
    async def test_forbidden_per_call(self, promotion_service, admin, rejected_candidate):
        with pytest.raises(InvalidTransitionError):
            await promotion_service.promote(admin.id, rejected_candidate.id, allow_rejected=False)


class TestPromoteAtomicity:

    @pytest.mark.asyncio
    async def test_vanished_record_rolls_back(self, promotion_service, store, admin, candidate, monkeypatch):
        async def delete_nothing(self, pre_registration_id):
            return 0

        monkeypatch.setattr(PreRegistrationRepository, "delete", delete_nothing)

        with pytest.raises(ReconciliationError):
            await promotion_service.promote(admin.id, candidate.id)

        assert await _count(store, "partners") == 0

    @pytest.mark.asyncio
    async def test_permanent_delete_failure_rolls_back(self, promotion_service, store, admin, candidate, monkeypatch):
        async def broken_delete(self, pre_registration_id):
            raise sa_exc.ProgrammingError("DELETE", {}, Exception("no such column"))

        monkeypatch.setattr(PreRegistrationRepository, "delete", broken_delete)

        with pytest.raises(ReconciliationError) as exc_info:
            await promotion_service.promote(admin.id, candidate.id)

        assert isinstance(exc_info.value.__cause__, sa_exc.ProgrammingError)
        assert "no such column" not in exc_info.value.message
        assert await _count(store, "partners") == 0
        assert await _count(store, "pre_registrations") == 1

    @pytest.mark.asyncio
    async def test_transient_delete_failure_retried(self, promotion_service, store, admin, candidate, monkeypatch):
        original = PreRegistrationRepository.delete
        calls = []

        async def flaky_delete(self, pre_registration_id):
            calls.append(pre_registration_id)
            if len(calls) == 1:
                raise sa_exc.OperationalError("DELETE", {}, Exception("database is locked"))
            return await original(self, pre_registration_id)

        monkeypatch.setattr(PreRegistrationRepository, "delete", flaky_delete)

        result = await promotion_service.promote(admin.id, candidate.id)

        assert len(calls) == 2
        assert await _count(store, "partners") == 1
        assert await _count(store, "pre_registrations") == 0
        partner = await PartnerRepository(store).get(result.partner_id)
        assert partner.cpf == candidate.cpf
