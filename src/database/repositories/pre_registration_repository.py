"""Pre-registration persistence."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import insert

from database.models import PreRegistrationRecord
from database.store import QueryRunner
from domain.aggregates import PreRegistration

_COLUMNS = """
    id, resp_tipo_cnpj, resp_perfil_clientes, resp_volume_indicacoes,
    status_elegibilidade, nome_completo, cpf, whatsapp, email, razao_social,
    cnpj, cidade, uf, aceite_termos, aceite_lgpd, created_at
"""


class PreRegistrationRepository:
    """Single-statement access to the ``pre_registrations`` table."""

    def __init__(self, runner: QueryRunner):
        self._runner = runner

    async def get(self, pre_registration_id: int) -> Optional[PreRegistration]:
        result = await self._runner.query(
            f"SELECT {_COLUMNS} FROM pre_registrations WHERE id = :id",
            {"id": pre_registration_id},
        )
        row = result.first()
        return PreRegistration.model_validate(row) if row else None

    async def find_by_document(
        self,
        cpf: Optional[str] = None,
        cnpj: Optional[str] = None,
    ) -> Optional[PreRegistration]:
        """Find a pre-registration holding the given tax id or business id."""
        for column, value in (("cpf", cpf), ("cnpj", cnpj)):
            if not value:
                continue
            result = await self._runner.query(
                f"SELECT {_COLUMNS} FROM pre_registrations WHERE {column} = :value ORDER BY id",
                {"value": value},
            )
            row = result.first()
            if row:
                return PreRegistration.model_validate(row)
        return None

    async def list_all(self) -> List[PreRegistration]:
        """All pre-registrations, newest first."""
        result = await self._runner.query(
            f"SELECT {_COLUMNS} FROM pre_registrations ORDER BY created_at DESC, id DESC"
        )
        return [PreRegistration.model_validate(row) for row in result.rows]

    async def create(self, values: Dict[str, Any]) -> int:
        result = await self._runner.query(insert(PreRegistrationRecord).values(**values))
        return result.inserted_id

    async def update_status(self, pre_registration_id: int, status: str) -> int:
        result = await self._runner.query(
            "UPDATE pre_registrations SET status_elegibilidade = :status WHERE id = :id",
            {"status": status, "id": pre_registration_id},
        )
        return result.rowcount

    async def delete(self, pre_registration_id: int) -> int:
        result = await self._runner.query(
            "DELETE FROM pre_registrations WHERE id = :id",
            {"id": pre_registration_id},
        )
        return result.rowcount
