"""Partner account persistence.

Partners are never deleted here. The credential hash is only read by
``find_for_login``; every other read maps rows to ``Partner``, which does not
carry it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import insert

from database.models import PartnerRecord
from database.store import QueryRunner
from domain.aggregates import Partner

_COLUMNS = """
    id, nome, cpf, email, senha_temp, whatsapp, razao_social, cnpj,
    cidade, uf, resp_tipo_cnpj, resp_perfil_clientes, resp_volume_indicacoes,
    aceite_termos, aceite_lgpd, status_elegibilidade, created_at
"""


class PartnerRepository:
    """Access to the ``partners`` table."""

    def __init__(self, runner: QueryRunner):
        self._runner = runner

    async def get(self, partner_id: int) -> Optional[Partner]:
        result = await self._runner.query(
            f"SELECT {_COLUMNS} FROM partners WHERE id = :id",
            {"id": partner_id},
        )
        row = result.first()
        return self._row_to_partner(row) if row else None

    async def exists(self, partner_id: int) -> bool:
        result = await self._runner.query(
            "SELECT 1 FROM partners WHERE id = :id",
            {"id": partner_id},
        )
        return bool(result.rows)

    async def find_by_identity(
        self,
        cpf: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[Partner]:
        """
        Find a partner sharing a tax id or an email.

        A tax id match takes precedence over an email match.
        """
        if cpf:
            partner = await self._find_one("cpf = :value", cpf)
            if partner:
                return partner
        if email:
            return await self._find_one("lower(email) = lower(:value)", email)
        return None

    async def find_by_document(
        self,
        cpf: Optional[str] = None,
        cnpj: Optional[str] = None,
    ) -> Optional[Partner]:
        """Find a partner holding the given tax id or business id."""
        if cpf:
            partner = await self._find_one("cpf = :value", cpf)
            if partner:
                return partner
        if cnpj:
            return await self._find_one("cnpj = :value", cnpj)
        return None

    async def find_for_login(
        self,
        cpf: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[Tuple[Partner, str]]:
        """Partner plus stored credential hash, looked up by tax id or email."""
        if cpf:
            where, params = "cpf = :cpf", {"cpf": cpf}
        elif email:
            where, params = "lower(email) = lower(:email)", {"email": email}
        else:
            return None

        result = await self._runner.query(
            f"SELECT {_COLUMNS}, senha FROM partners WHERE {where}",
            params,
        )
        row = result.first()
        if not row:
            return None
        return self._row_to_partner(row), row["senha"]

    async def list_all(self) -> List[Partner]:
        """All partners, newest first."""
        result = await self._runner.query(
            f"SELECT {_COLUMNS} FROM partners ORDER BY created_at DESC, id DESC"
        )
        return [self._row_to_partner(row) for row in result.rows]

    async def create(self, values: Dict[str, Any]) -> int:
        """
        Insert a partner.

        Args:
            values: Column values, ``senha`` already hashed.

        Returns:
            The new partner id.

        Raises:
            sqlalchemy.exc.IntegrityError: cpf or email already taken.
        """
        result = await self._runner.query(insert(PartnerRecord).values(**values))
        return result.inserted_id

    async def update_credential(self, partner_id: int, senha_hash: str) -> int:
        """Replace the credential hash and drop any stored temporary credential."""
        result = await self._runner.query(
            "UPDATE partners SET senha = :senha, senha_temp = NULL WHERE id = :id",
            {"senha": senha_hash, "id": partner_id},
        )
        return result.rowcount

    async def _find_one(self, condition: str, value: str) -> Optional[Partner]:
        result = await self._runner.query(
            f"SELECT {_COLUMNS} FROM partners WHERE {condition} ORDER BY id",
            {"value": value},
        )
        row = result.first()
        return self._row_to_partner(row) if row else None

    def _row_to_partner(self, row: Dict[str, Any]) -> Partner:
        return Partner.model_validate(row)
