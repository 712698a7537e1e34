"""Supervisor account persistence."""

from __future__ import annotations

from typing import Optional, Tuple

from sqlalchemy import insert

from database.models import SupervisorRecord
from database.store import QueryRunner
from domain.aggregates import Supervisor

_COLUMNS = "id, nome, email, created_at"


class SupervisorRepository:
    """Single-statement access to the ``supervisors`` table."""

    def __init__(self, runner: QueryRunner):
        self._runner = runner

    async def get(self, supervisor_id: int) -> Optional[Supervisor]:
        result = await self._runner.query(
            f"SELECT {_COLUMNS} FROM supervisors WHERE id = :id",
            {"id": supervisor_id},
        )
        row = result.first()
        return Supervisor.model_validate(row) if row else None

    async def find_for_login(self, email: str) -> Optional[Tuple[Supervisor, str]]:
        """Supervisor plus stored credential hash, looked up by email."""
        result = await self._runner.query(
            f"SELECT {_COLUMNS}, senha FROM supervisors WHERE lower(email) = lower(:email)",
            {"email": email},
        )
        row = result.first()
        if row is None:
            return None
        return Supervisor.model_validate(row), row["senha"]

    async def create(self, nome: str, email: str, senha_hash: str) -> int:
        result = await self._runner.query(
            insert(SupervisorRecord).values(nome=nome, email=email, senha=senha_hash)
        )
        return result.inserted_id
