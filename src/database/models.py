"""
SQLAlchemy models for the partner referral database.

Schema:
- admins: administrator accounts
- supervisors: read-only accounts that oversee the partner base
- partners: partner accounts (self-registered or promoted)
- pre_registrations: screening submissions awaiting decision or promotion
- operations: loan-referral cases owned by a partner

Constraints:
- partners.cpf and partners.email are globally unique
- operations.parceiro_id references partners.id
- status columns are restricted to their enumerations by check constraints
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Numeric, Boolean, DateTime,
    Text, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import declarative_base

from domain.aggregates import OperationStatus, PreRegistrationStatus


Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _in_clause(column: str, values) -> str:
    allowed = ", ".join(f"'{value.value}'" for value in values)
    return f"{column} IN ({allowed})"


# Monetary columns come back as float
Money = Numeric(14, 2, asdecimal=False)


# =============================================================================
# ACCOUNTS
# =============================================================================

class AdminRecord(Base):
    """Administrator account."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nome = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    senha = Column(String(255), nullable=False, comment="bcrypt hash")
    created_at = Column(DateTime, default=utcnow, nullable=False)


class SupervisorRecord(Base):
    """Supervisor account, limited to viewing partners."""
    __tablename__ = "supervisors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nome = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    senha = Column(String(255), nullable=False, comment="bcrypt hash")
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PartnerRecord(Base):
    """
    Partner account.

    senha holds the bcrypt hash. senha_temp holds the plaintext temporary
    credential only when persisting it is enabled in configuration.
    """
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nome = Column(String(255), nullable=False)
    cpf = Column(String(20), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    senha = Column(String(255), nullable=False, comment="bcrypt hash")
    senha_temp = Column(String(32), nullable=True)

    whatsapp = Column(String(30))
    razao_social = Column(String(255))
    cnpj = Column(String(20))
    cidade = Column(String(120))
    uf = Column(String(2))

    # Qualifying-answer snapshot
    resp_tipo_cnpj = Column(String(10))
    resp_perfil_clientes = Column(String(10))
    resp_volume_indicacoes = Column(String(30))

    aceite_termos = Column(Boolean, default=False, nullable=False)
    aceite_lgpd = Column(Boolean, default=False, nullable=False)
    status_elegibilidade = Column(String(20))
    created_at = Column(DateTime, default=utcnow, nullable=False)


# =============================================================================
# PRE-REGISTRATIONS
# =============================================================================

class PreRegistrationRecord(Base):
    """Eligibility screening submission."""
    __tablename__ = "pre_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)

    resp_tipo_cnpj = Column(String(10), nullable=False)
    resp_perfil_clientes = Column(String(10), nullable=False)
    resp_volume_indicacoes = Column(String(30), nullable=False)
    status_elegibilidade = Column(
        String(20),
        nullable=True,
        default=PreRegistrationStatus.PRE_APPROVED.value,
        comment="Backfilled from the qualifying answers when missing",
    )

    nome_completo = Column(String(255))
    cpf = Column(String(20), index=True)
    whatsapp = Column(String(30))
    email = Column(String(255))
    razao_social = Column(String(255))
    cnpj = Column(String(20), index=True)
    cidade = Column(String(120))
    uf = Column(String(2))

    aceite_termos = Column(Boolean, default=False, nullable=False)
    aceite_lgpd = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status_elegibilidade IS NULL OR "
            + _in_clause("status_elegibilidade", PreRegistrationStatus),
            name="ck_pre_registration_status",
        ),
    )


# =============================================================================
# OPERATIONS
# =============================================================================

class OperationRecord(Base):
    """Loan-referral case. Document slots hold JSON text."""
    __tablename__ = "operations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    parceiro_id = Column(
        Integer,
        ForeignKey("partners.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status_operacao = Column(
        String(30),
        nullable=False,
        default=OperationStatus.DRAFT.value,
        index=True,
    )

    # Client
    cliente_nome = Column(String(255))
    cliente_cpf = Column(String(20))
    cliente_email = Column(String(255))
    cliente_telefone = Column(String(30))
    cliente_data_nascimento = Column(String(20))
    cliente_estado_civil = Column(String(30))
    cliente_renda_mensal = Column(Money, default=0)
    cliente_possui_restricao = Column(Boolean, default=False)

    # Property
    imovel_tipo = Column(String(30))
    imovel_cep = Column(String(10))
    imovel_endereco = Column(String(255))
    imovel_cidade = Column(String(120))
    imovel_uf = Column(String(2))
    imovel_valor = Column(Money, default=0)
    imovel_quitado = Column(Boolean, default=True)
    imovel_matricula = Column(String(60))

    # Financing
    operacao_tipo = Column(String(30))
    operacao_valor_pretendido = Column(Money, default=0)
    operacao_prazo_meses = Column(Integer)
    operacao_amortizacao = Column(String(10))
    operacao_finalidade = Column(Text)

    # Documents
    doc_identidade = Column(Text)
    doc_comprovante_renda = Column(Text)
    doc_comprovante_residencia = Column(Text)
    doc_matricula_imovel = Column(Text)
    doc_iptu = Column(Text)

    observacoes = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    submitted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            _in_clause("status_operacao", OperationStatus),
            name="ck_operation_status",
        ),
        CheckConstraint(
            "cliente_renda_mensal >= 0 AND imovel_valor >= 0 AND operacao_valor_pretendido >= 0",
            name="ck_operation_money_non_negative",
        ),
        Index("ix_operations_partner_created", "parceiro_id", "created_at"),
    )
