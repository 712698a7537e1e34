"""
Field schema for loan operations.

Declares every intake field of an operation with its kind (text, money,
boolean, enumeration, integer or document slot) and default, and applies the
matching normalizer before a write. Wire names follow the intake form.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .normalization import (
    normalize_boolean,
    normalize_documents,
    normalize_enum,
    normalize_int,
    normalize_money,
    normalize_text,
)


class FieldKind(str, Enum):
    TEXT = "text"
    MONEY = "money"
    BOOLEAN = "boolean"
    ENUM = "enum"
    INTEGER = "integer"
    DOCUMENTS = "documents"


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of one operation field."""
    name: str
    kind: FieldKind
    default: Any = None
    allowed: Tuple[str, ...] = ()
    max_length: Optional[int] = None

    def normalize(self, value: Any) -> Any:
        if self.kind is FieldKind.MONEY:
            return normalize_money(value, fallback=self.default)
        if self.kind is FieldKind.BOOLEAN:
            return normalize_boolean(value, fallback=self.default)
        if self.kind is FieldKind.ENUM:
            return normalize_enum(value, self.allowed, self.default)
        if self.kind is FieldKind.INTEGER:
            return normalize_int(value, fallback=self.default)
        if self.kind is FieldKind.DOCUMENTS:
            return normalize_documents(value)
        return normalize_text(value, self.max_length)


MARITAL_STATUSES = ("solteiro", "casado", "divorciado", "viuvo", "uniao_estavel")
PROPERTY_TYPES = ("residencial", "comercial", "rural", "terreno")
OPERATION_TYPES = ("home_equity", "financiamento", "refinanciamento")
AMORTIZATION_SYSTEMS = ("sac", "price")

CLIENT_FIELDS = (
    FieldSpec("cliente_nome", FieldKind.TEXT, max_length=255),
    FieldSpec("cliente_cpf", FieldKind.TEXT, max_length=20),
    FieldSpec("cliente_email", FieldKind.TEXT, max_length=255),
    FieldSpec("cliente_telefone", FieldKind.TEXT, max_length=30),
    FieldSpec("cliente_data_nascimento", FieldKind.TEXT, max_length=20),
    FieldSpec("cliente_estado_civil", FieldKind.ENUM, "nao_informado", MARITAL_STATUSES),
    FieldSpec("cliente_renda_mensal", FieldKind.MONEY, 0.0),
    FieldSpec("cliente_possui_restricao", FieldKind.BOOLEAN, False),
)

PROPERTY_FIELDS = (
    FieldSpec("imovel_tipo", FieldKind.ENUM, "residencial", PROPERTY_TYPES),
    FieldSpec("imovel_cep", FieldKind.TEXT, max_length=10),
    FieldSpec("imovel_endereco", FieldKind.TEXT, max_length=255),
    FieldSpec("imovel_cidade", FieldKind.TEXT, max_length=120),
    FieldSpec("imovel_uf", FieldKind.TEXT, max_length=2),
    FieldSpec("imovel_valor", FieldKind.MONEY, 0.0),
    FieldSpec("imovel_quitado", FieldKind.BOOLEAN, True),
    FieldSpec("imovel_matricula", FieldKind.TEXT, max_length=60),
)

FINANCING_FIELDS = (
    FieldSpec("operacao_tipo", FieldKind.ENUM, "home_equity", OPERATION_TYPES),
    FieldSpec("operacao_valor_pretendido", FieldKind.MONEY, 0.0),
    FieldSpec("operacao_prazo_meses", FieldKind.INTEGER),
    FieldSpec("operacao_amortizacao", FieldKind.ENUM, "sac", AMORTIZATION_SYSTEMS),
    FieldSpec("operacao_finalidade", FieldKind.TEXT),
)

DOCUMENT_FIELDS = (
    FieldSpec("doc_identidade", FieldKind.DOCUMENTS),
    FieldSpec("doc_comprovante_renda", FieldKind.DOCUMENTS),
    FieldSpec("doc_comprovante_residencia", FieldKind.DOCUMENTS),
    FieldSpec("doc_matricula_imovel", FieldKind.DOCUMENTS),
    FieldSpec("doc_iptu", FieldKind.DOCUMENTS),
)

OTHER_FIELDS = (
    FieldSpec("observacoes", FieldKind.TEXT),
)

OPERATION_FIELDS: Dict[str, FieldSpec] = {
    spec.name: spec
    for group in (CLIENT_FIELDS, PROPERTY_FIELDS, FINANCING_FIELDS, DOCUMENT_FIELDS, OTHER_FIELDS)
    for spec in group
}

DOCUMENT_SLOTS = tuple(spec.name for spec in DOCUMENT_FIELDS)


def normalize_operation_payload(payload: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Normalize an operation intake payload.

    Args:
        payload: Raw request data. Keys outside the schema (including the
            status and ownership columns) are ignored.
        partial: When True only fields present in the payload are returned;
            otherwise absent fields receive their declared default.

    Returns:
        Dict of canonical values keyed by column name. Document slots are
        lists of document dicts (or None).

    Raises:
        ValidationError: A document slot is malformed.
    """
    values: Dict[str, Any] = {}
    for name, spec in OPERATION_FIELDS.items():
        if name in payload:
            values[name] = spec.normalize(payload[name])
        elif not partial:
            values[name] = spec.normalize(None)
    return values


def documents_to_storage(values: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize document slots to JSON text for the ``operations`` table."""
    stored = dict(values)
    for slot in DOCUMENT_SLOTS:
        if stored.get(slot) is not None:
            stored[slot] = json.dumps(stored[slot], ensure_ascii=False)
    return stored


def documents_from_storage(row: Dict[str, Any]) -> Dict[str, Any]:
    """Decode document slot JSON read back from the ``operations`` table."""
    loaded = dict(row)
    for slot in DOCUMENT_SLOTS:
        raw = loaded.get(slot)
        if isinstance(raw, str):
            loaded[slot] = normalize_documents(raw)
    return loaded


def fields_by_group() -> Dict[str, List[str]]:
    """Field names per intake form step."""
    return {
        "client": [spec.name for spec in CLIENT_FIELDS],
        "property": [spec.name for spec in PROPERTY_FIELDS],
        "financing": [spec.name for spec in FINANCING_FIELDS],
        "documents": list(DOCUMENT_SLOTS),
    }
