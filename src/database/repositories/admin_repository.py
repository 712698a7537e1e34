"""Administrator account persistence."""

from __future__ import annotations

from typing import Optional, Tuple

from sqlalchemy import insert

from database.models import AdminRecord
from database.store import QueryRunner
from domain.aggregates import Admin

_COLUMNS = "id, nome, email, created_at"


class AdminRepository:
    """Single-statement access to the ``admins`` table."""

    def __init__(self, runner: QueryRunner):
        self._runner = runner

    async def get(self, admin_id: int) -> Optional[Admin]:
        result = await self._runner.query(
            f"SELECT {_COLUMNS} FROM admins WHERE id = :id",
            {"id": admin_id},
        )
        row = result.first()
        return Admin.model_validate(row) if row else None

    async def exists(self, admin_id: int) -> bool:
        result = await self._runner.query(
            "SELECT 1 FROM admins WHERE id = :id",
            {"id": admin_id},
        )
        return bool(result.rows)

    async def find_for_login(self, email: str) -> Optional[Tuple[Admin, str]]:
        """Admin plus stored credential hash, looked up by email."""
        result = await self._runner.query(
            f"SELECT {_COLUMNS}, senha FROM admins WHERE lower(email) = lower(:email)",
            {"email": email},
        )
        row = result.first()
        if not row:
            return None
        return Admin.model_validate(row), row["senha"]

    async def create(self, nome: str, email: str, senha_hash: str) -> int:
        result = await self._runner.query(
            insert(AdminRecord).values(nome=nome, email=email, senha=senha_hash)
        )
        return result.inserted_id
