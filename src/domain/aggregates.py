"""
Domain Aggregates for the partner referral program.

Read models for the stored entities plus the value objects returned by
the lifecycle services. Services build them from repository rows; they are
never cached across calls.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_COMMISSION_RATE = 0.02


# =============================================================================
# STATUS ENUMERATIONS
# =============================================================================

class PreRegistrationStatus(str, Enum):
    """Screening verdict of a pre-registration."""
    PRE_APPROVED = "pre-approved"  # Default when qualifying answers pass
    REJECTED = "rejected"  # Failed screening or rejected by an admin
    APPROVED = "approved"  # Terminal, reached only through promotion

    @classmethod
    def from_string(cls, value: str) -> "PreRegistrationStatus":
        """Convert string to status, case-insensitive."""
        value = str(value).strip().lower()
        for status in cls:
            if status.value == value:
                return status
        raise ValueError(f"Invalid pre-registration status: {value}")


class OperationStatus(str, Enum):
    """Lifecycle status of a loan operation."""
    DRAFT = "draft"  # Initial state
    SUBMITTED = "submitted"  # Sent by the partner for analysis
    IN_REVIEW = "in_review"
    PENDING_DOCUMENTS = "pending_documents"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OperationStatus":
        """Convert string to status, case-insensitive."""
        value = str(value).strip().lower()
        for status in cls:
            if status.value == value:
                return status
        raise ValueError(f"Invalid operation status: {value}")


# =============================================================================
# ACCOUNTS
# =============================================================================

class Admin(BaseModel):
    """Administrator account. The credential hash never leaves the repository."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    nome: str
    email: str
    created_at: Optional[datetime] = None


class Supervisor(BaseModel):
    """Read-only account that can list and view partners."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    nome: str
    email: str
    created_at: Optional[datetime] = None


class Partner(BaseModel):
    """
    Partner account.

    Created by self-registration or by promotion of a pre-registration.
    ``senha_temp`` is only populated when temporary credentials are configured
    to be persisted for administrator display.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    nome: str
    cpf: str
    email: str
    whatsapp: Optional[str] = None
    razao_social: Optional[str] = None
    cnpj: Optional[str] = None
    cidade: Optional[str] = None
    uf: Optional[str] = None

    # Qualifying-answer snapshot
    resp_tipo_cnpj: Optional[str] = None
    resp_perfil_clientes: Optional[str] = None
    resp_volume_indicacoes: Optional[str] = None

    aceite_termos: bool = False
    aceite_lgpd: bool = False
    status_elegibilidade: Optional[str] = None
    senha_temp: Optional[str] = Field(default=None, exclude=True)
    created_at: Optional[datetime] = None


# =============================================================================
# PRE-REGISTRATION AGGREGATE
# =============================================================================

class PreRegistration(BaseModel):
    """
    Screening submission awaiting an eligibility decision or promotion.

    Invariants:
    - ``cpf``/``cnpj``, when present, do not collide with another
      pre-registration or with a partner
    - Removed exactly when promoted to a partner
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    resp_tipo_cnpj: Optional[str] = None
    resp_perfil_clientes: Optional[str] = None
    resp_volume_indicacoes: Optional[str] = None
    status_elegibilidade: Optional[PreRegistrationStatus] = None

    nome_completo: Optional[str] = None
    cpf: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None
    razao_social: Optional[str] = None
    cnpj: Optional[str] = None
    cidade: Optional[str] = None
    uf: Optional[str] = None

    aceite_termos: bool = False
    aceite_lgpd: bool = False
    created_at: Optional[datetime] = None

    def missing_partner_fields(self) -> List[str]:
        """Fields required for promotion that are absent or blank."""
        required = ("nome_completo", "cpf", "email")
        return [name for name in required if not (getattr(self, name) or "").strip()]


# =============================================================================
# OPERATION AGGREGATE
# =============================================================================

class DocumentAttachment(BaseModel):
    """One document stored in an operation's document slot."""

    name: str
    type: str
    size: int = 0
    encodedPayload: str = ""
    compressedSize: int = 0


class Operation(BaseModel):
    """
    Loan-referral case submitted by a partner.

    Invariants:
    - ``parceiro_id`` references an existing partner
    - Money fields are non-negative floats, enum fields hold allowed values
    - ``submitted_at`` is set on the first entry into ``submitted``
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    parceiro_id: int
    status_operacao: OperationStatus = OperationStatus.DRAFT

    # Client
    cliente_nome: Optional[str] = None
    cliente_cpf: Optional[str] = None
    cliente_email: Optional[str] = None
    cliente_telefone: Optional[str] = None
    cliente_data_nascimento: Optional[str] = None
    cliente_estado_civil: Optional[str] = None
    cliente_renda_mensal: float = 0.0
    cliente_possui_restricao: bool = False

    # Property
    imovel_tipo: Optional[str] = None
    imovel_cep: Optional[str] = None
    imovel_endereco: Optional[str] = None
    imovel_cidade: Optional[str] = None
    imovel_uf: Optional[str] = None
    imovel_valor: float = 0.0
    imovel_quitado: bool = True
    imovel_matricula: Optional[str] = None

    # Financing
    operacao_tipo: Optional[str] = None
    operacao_valor_pretendido: float = 0.0
    operacao_prazo_meses: Optional[int] = None
    operacao_amortizacao: Optional[str] = None
    operacao_finalidade: Optional[str] = None

    # Documents
    doc_identidade: Optional[List[DocumentAttachment]] = None
    doc_comprovante_renda: Optional[List[DocumentAttachment]] = None
    doc_comprovante_residencia: Optional[List[DocumentAttachment]] = None
    doc_matricula_imovel: Optional[List[DocumentAttachment]] = None
    doc_iptu: Optional[List[DocumentAttachment]] = None

    observacoes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    def to_summary_dict(self) -> Dict[str, Any]:
        """Compact representation for listings, without document payloads."""
        return {
            "id": self.id,
            "parceiro_id": self.parceiro_id,
            "cliente_nome": self.cliente_nome,
            "operacao_tipo": self.operacao_tipo,
            "operacao_valor_pretendido": self.operacao_valor_pretendido,
            "status_operacao": self.status_operacao.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }


# =============================================================================
# SERVICE RESULTS
# =============================================================================

class PromotionResult(BaseModel):
    """Outcome of a promotion. The plaintext credential is shown exactly once."""

    partner_id: int
    temporary_credential: str = Field(repr=False)


class OperationStatistics(BaseModel):
    """
    Partner dashboard figures.

    ``commission_total`` applies the commission rate to the requested amount
    of approved operations. ``created_this_month`` counts operations created
    since the first day of the current UTC month.
    """

    total: int = 0
    by_status: Dict[str, int] = Field(
        default_factory=lambda: {status.value: 0 for status in OperationStatus}
    )
    commission_total: float = 0.0
    created_this_month: int = 0

    @classmethod
    def from_operations(
        cls,
        operations: List[Operation],
        commission_rate: float = DEFAULT_COMMISSION_RATE,
        now: Optional[datetime] = None,
    ) -> "OperationStatistics":
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        stats = cls(total=len(operations))
        commission = 0.0
        for operation in operations:
            stats.by_status[operation.status_operacao.value] += 1
            if operation.status_operacao is OperationStatus.APPROVED:
                commission += operation.operacao_valor_pretendido * commission_rate
            created = operation.created_at
            if created is not None and created.tzinfo is not None:
                created = created.astimezone(timezone.utc).replace(tzinfo=None)
            if created is not None and created >= month_start:
                stats.created_this_month += 1
        stats.commission_total = round(commission, 2)
        return stats
