"""Tests for the store, transactions and schema constraints."""

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy import insert

from database.async_engine import check_database_connection
from database.models import OperationRecord, PartnerRecord, PreRegistrationRecord
from database.repositories import (
    OperationRepository,
    PartnerRepository,
    PreRegistrationRepository,
)
from domain.aggregates import OperationStatus
from domain.operation_fields import normalize_operation_payload


def _partner_values(**overrides):
    values = {
        "nome": "Paula",
        "cpf": "999.888.777-66",
        "email": "paula@exemplo.com.br",
        "senha": "$2b$04$notarealhash",
    }
    values.update(overrides)
    return values


class TestStore:

    @pytest.mark.asyncio
    async def test_connection_check(self, engine):
        assert await check_database_connection(engine) is True

    @pytest.mark.asyncio
    async def test_query_rows(self, store):
        result = await store.query("SELECT 1 AS one, 'x' AS two")
        assert result.rows == [{"one": 1, "two": "x"}]
        assert result.first() == {"one": 1, "two": "x"}
        assert result.scalar() == 1

    @pytest.mark.asyncio
    async def test_empty_result(self, store):
        result = await store.query("SELECT id FROM partners WHERE id = :id", {"id": 404})
        assert result.rows == []
        assert result.first() is None
        assert result.scalar() is None

    @pytest.mark.asyncio
    async def test_insert_reports_id_and_update_reports_rowcount(self, store):
        result = await store.query(insert(PartnerRecord).values(**_partner_values()))
        assert result.inserted_id is not None

        updated = await store.query(
            "UPDATE partners SET cidade = :cidade WHERE id = :id",
            {"cidade": "Sorocaba", "id": result.inserted_id},
        )
        assert updated.rowcount == 1

        missing = await store.query(
            "UPDATE partners SET cidade = :cidade WHERE id = :id",
            {"cidade": "Sorocaba", "id": result.inserted_id + 100},
        )
        assert missing.rowcount == 0


class TestStoreTransaction:

    @pytest.mark.asyncio
    async def test_commit(self, store):
        async with store.transaction() as tx:
            partner_id = await PartnerRepository(tx).create(_partner_values())
            assert tx.is_active

        assert await PartnerRepository(store).exists(partner_id)

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, store):
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await PartnerRepository(tx).create(_partner_values())
                raise RuntimeError("abort")

        result = await store.query("SELECT COUNT(*) AS n FROM partners")
        assert result.scalar() == 0

    @pytest.mark.asyncio
    async def test_explicit_control(self, store):
        tx = store.transaction()
        await tx.begin()
        try:
            await PartnerRepository(tx).create(_partner_values())
            await tx.rollback()
        finally:
            await tx.close()

        assert not tx.is_active
        result = await store.query("SELECT COUNT(*) AS n FROM partners")
        assert result.scalar() == 0

    @pytest.mark.asyncio
    async def test_query_without_begin(self, store):
        with pytest.raises(RuntimeError):
            await store.transaction().query("SELECT 1")


class TestConstraints:

    @pytest.mark.asyncio
    async def test_partner_cpf_unique(self, store):
        await store.query(insert(PartnerRecord).values(**_partner_values()))
        with pytest.raises(sa_exc.IntegrityError):
            await store.query(insert(PartnerRecord).values(**_partner_values(email="outra@exemplo.com.br")))

    @pytest.mark.asyncio
    async def test_partner_email_unique(self, store):
        await store.query(insert(PartnerRecord).values(**_partner_values()))
        with pytest.raises(sa_exc.IntegrityError):
            await store.query(insert(PartnerRecord).values(**_partner_values(cpf="000.000.000-00")))

    @pytest.mark.asyncio
    async def test_operation_requires_partner(self, store):
        with pytest.raises(sa_exc.IntegrityError):
            await OperationRepository(store).create(4242, normalize_operation_payload({}))

        result = await store.query("SELECT COUNT(*) AS n FROM operations")
        assert result.scalar() == 0

    @pytest.mark.asyncio
    async def test_operation_status_checked(self, store):
        partner_id = await PartnerRepository(store).create(_partner_values())
        with pytest.raises(sa_exc.IntegrityError):
            await store.query(insert(OperationRecord).values(parceiro_id=partner_id, status_operacao="archived"))

    @pytest.mark.asyncio
    async def test_operation_money_non_negative(self, store):
        partner_id = await PartnerRepository(store).create(_partner_values())
        with pytest.raises(sa_exc.IntegrityError):
            await store.query(insert(OperationRecord).values(parceiro_id=partner_id, imovel_valor=-1))

    @pytest.mark.asyncio
    async def test_pre_registration_status_checked(self, store):
        with pytest.raises(sa_exc.IntegrityError):
            await store.query(insert(PreRegistrationRecord).values(
                resp_tipo_cnpj="SIM",
                resp_perfil_clientes="SIM",
                resp_volume_indicacoes="1-5",
                status_elegibilidade="pending",
            ))


class TestRepositories:

    @pytest.mark.asyncio
    async def test_partner_lookup_precedence(self, store):
        repo = PartnerRepository(store)
        first = await repo.create(_partner_values())
        second = await repo.create(_partner_values(cpf="123", email="outro@exemplo.com.br"))

        by_cpf = await repo.find_by_identity(cpf="123", email="paula@exemplo.com.br")
        assert by_cpf.id == second

        by_email = await repo.find_by_identity(cpf="nope", email="PAULA@exemplo.com.br")
        assert by_email.id == first

        assert await repo.find_by_identity() is None

    @pytest.mark.asyncio
    async def test_login_lookup_returns_hash(self, store):
        repo = PartnerRepository(store)
        await repo.create(_partner_values())
        partner, senha = await repo.find_for_login(cpf="999.888.777-66")
        assert partner.nome == "Paula"
        assert senha == "$2b$04$notarealhash"
        assert "senha" not in partner.model_dump()

    @pytest.mark.asyncio
    async def test_pre_registration_delete_rowcount(self, store):
        repo = PreRegistrationRepository(store)
        record_id = await repo.create({
            "resp_tipo_cnpj": "SIM",
            "resp_perfil_clientes": "NAO",
            "resp_volume_indicacoes": "1-5",
        })
        record = await repo.get(record_id)
        assert record.status_elegibilidade.value == "pre-approved"

        assert await repo.delete(record_id) == 1
        assert await repo.delete(record_id) == 0

    @pytest.mark.asyncio
    async def test_operation_documents_decoded(self, store):
        partner_id = await PartnerRepository(store).create(_partner_values())
        values = normalize_operation_payload({
            "doc_identidade": {"name": "rg.pdf", "encodedPayload": "data:application/pdf;base64,SGVsbG8="},
        })
        repo = OperationRepository(store)
        operation_id = await repo.create(partner_id, values)

        operation = await repo.get(operation_id)
        assert operation.status_operacao is OperationStatus.DRAFT
        assert operation.doc_identidade[0].name == "rg.pdf"
        assert operation.doc_identidade[0].size == 5
        assert operation.doc_iptu is None
