"""Tests for intake field normalization."""

import json
import math

import pytest

from domain.errors import ValidationError
from domain.normalization import (
    DEFAULT_DOCUMENT_TYPE,
    normalize_boolean,
    normalize_documents,
    normalize_enum,
    normalize_int,
    normalize_money,
    normalize_text,
)
from domain.operation_fields import (
    DOCUMENT_SLOTS,
    OPERATION_FIELDS,
    documents_from_storage,
    documents_to_storage,
    normalize_operation_payload,
)


class TestNormalizeMoney:
    """Locale-tolerant money parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("R$ 1.234,56", 1234.56),
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("1234,5", 1234.5),
        ("2.500.000", 2500000.0),
        ("2.500.000,00", 2500000.0),
        ("1,234,567", 1234567.0),
        ("350000", 350000.0),
        ("1234.5", 1234.5),
        ("R$ 0,99", 0.99),
        (1500, 1500.0),
        (1234.56, 1234.56),
    ])
    def test_formats(self, raw, expected):
        assert normalize_money(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "R$", "abc", float("nan"), float("inf"), -10, "-5,00", True])
    def test_fallback(self, raw):
        assert normalize_money(raw) == 0.0
        assert normalize_money(raw, fallback=7.0) == 7.0

    def test_result_is_finite_float(self):
        value = normalize_money("R$ 9.999.999,99")
        assert isinstance(value, float)
        assert math.isfinite(value)

    @pytest.mark.parametrize("raw", ["R$ 1.234,56", "1,234.56", 0, 99.9, "2.500.000", "abc", 1e6])
    def test_idempotent(self, raw):
        once = normalize_money(raw)
        assert normalize_money(once) == once


class TestNormalizeBoolean:
    """Truthy/falsy token mapping."""

    @pytest.mark.parametrize("raw", [True, 1, "1", "true", "TRUE", "on", "yes", "sim", "SIM", " Sim "])
    def test_truthy(self, raw):
        assert normalize_boolean(raw) is True

    @pytest.mark.parametrize("raw", [False, 0, "0", "false", "off", "no", "nao", "NAO", "não", "NÃO"])
    def test_falsy(self, raw):
        assert normalize_boolean(raw) is False

    @pytest.mark.parametrize("raw", [None, "", "talvez", 2, "yesno", "s", "N", "y"])
    def test_unrecognized_returns_fallback(self, raw):
        assert normalize_boolean(raw) is None
        assert normalize_boolean(raw, fallback=True) is True

    def test_single_letter_answers_are_not_tokens(self):
        assert normalize_boolean("s", fallback=None) is None
        assert normalize_boolean("n", fallback=None) is None


class TestNormalizeEnum:
    ALLOWED = ("solteiro", "casado", "uniao_estavel")

    def test_case_folded_member(self):
        assert normalize_enum("CASADO", self.ALLOWED, "nao_informado") == "casado"
        assert normalize_enum("  Uniao_Estavel ", self.ALLOWED, "nao_informado") == "uniao_estavel"

    @pytest.mark.parametrize("raw", [None, "", "divorciado", 42])
    def test_default(self, raw):
        assert normalize_enum(raw, self.ALLOWED, "nao_informado") == "nao_informado"


class TestNormalizeScalars:

    def test_int(self):
        assert normalize_int("240 meses") == 240
        assert normalize_int(120) == 120
        assert normalize_int(12.9) == 12
        assert normalize_int(None) is None
        assert normalize_int("abc", fallback=0) == 0
        assert normalize_int(-3) is None

    def test_text(self):
        assert normalize_text("  Campinas ") == "Campinas"
        assert normalize_text("   ") is None
        assert normalize_text(None) is None
        assert normalize_text("SPX", max_length=2) == "SP"


class TestNormalizeDocuments:
    """Document slot normalization."""

    PDF = "data:application/pdf;base64,SGVsbG8="  # "Hello"

    @pytest.mark.parametrize("raw", [None, "", "   ", "null"])
    def test_absent(self, raw):
        assert normalize_documents(raw) is None

    def test_single_object_becomes_list(self):
        docs = normalize_documents({"name": "rg.pdf", "encodedPayload": self.PDF})
        assert docs == [{
            "name": "rg.pdf",
            "type": "application/pdf",
            "size": 5,
            "encodedPayload": self.PDF,
            "compressedSize": 5,
        }]

    def test_list_and_defaults(self):
        docs = normalize_documents([{"encodedPayload": "AAAA"}, {"name": "b", "size": "10"}])
        assert docs[0]["name"] == "documento-1"
        assert docs[0]["type"] == DEFAULT_DOCUMENT_TYPE
        assert docs[0]["size"] == 3
        assert docs[1]["size"] == 10
        assert docs[1]["compressedSize"] == 10
        assert docs[1]["encodedPayload"] == ""

    def test_given_fields_are_trusted(self):
        docs = normalize_documents({
            "name": "iptu.jpg",
            "type": "image/jpeg",
            "size": 900_000_000,
            "encodedPayload": self.PDF,
            "compressedSize": 400,
        })
        assert docs[0]["type"] == "image/jpeg"
        assert docs[0]["size"] == 900_000_000
        assert docs[0]["compressedSize"] == 400

    def test_json_string(self):
        raw = json.dumps([{"name": "a.pdf", "encodedPayload": self.PDF}])
        docs = normalize_documents(raw)
        assert docs[0]["name"] == "a.pdf"
        json.dumps(docs)

    def test_malformed_json(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_documents("{not json")
        assert exc_info.value.details["field"] == "documents"
        assert "diagnostic" not in exc_info.value.to_dict()

    @pytest.mark.parametrize("raw", [["just a string"], 42])
    def test_non_object_entries(self, raw):
        with pytest.raises(ValidationError):
            normalize_documents(raw)


class TestOperationPayload:
    """Operation field schema."""

    def test_full_payload_gets_defaults(self):
        values = normalize_operation_payload({})
        assert set(values) == set(OPERATION_FIELDS)
        assert values["cliente_estado_civil"] == "nao_informado"
        assert values["imovel_tipo"] == "residencial"
        assert values["operacao_tipo"] == "home_equity"
        assert values["operacao_amortizacao"] == "sac"
        assert values["imovel_quitado"] is True
        assert values["cliente_possui_restricao"] is False
        assert values["operacao_valor_pretendido"] == 0.0
        assert values["doc_identidade"] is None

    def test_values_are_normalized(self):
        values = normalize_operation_payload({
            "operacao_valor_pretendido": "R$ 1.234,56",
            "imovel_valor": "850.000,00",
            "imovel_quitado": "nao",
            "cliente_estado_civil": "Casado",
            "operacao_tipo": "leasing",
            "operacao_prazo_meses": "180",
            "cliente_nome": "  Maria Souza ",
        })
        assert values["operacao_valor_pretendido"] == pytest.approx(1234.56)
        assert values["imovel_valor"] == pytest.approx(850000.0)
        assert values["imovel_quitado"] is False
        assert values["cliente_estado_civil"] == "casado"
        assert values["operacao_tipo"] == "home_equity"
        assert values["operacao_prazo_meses"] == 180
        assert values["cliente_nome"] == "Maria Souza"

    def test_partial_only_present_fields(self):
        values = normalize_operation_payload(
            {"imovel_cidade": "Santos", "unknown": "x", "parceiro_id": 99},
            partial=True,
        )
        assert values == {"imovel_cidade": "Santos"}

    def test_document_storage_round_trip(self):
        values = normalize_operation_payload(
            {"doc_iptu": {"name": "iptu.pdf", "encodedPayload": "AAAA"}},
            partial=True,
        )
        stored = documents_to_storage(values)
        assert isinstance(stored["doc_iptu"], str)
        assert documents_from_storage(stored)["doc_iptu"] == values["doc_iptu"]

    def test_document_slots_declared(self):
        assert DOCUMENT_SLOTS == (
            "doc_identidade",
            "doc_comprovante_renda",
            "doc_comprovante_residencia",
            "doc_matricula_imovel",
            "doc_iptu",
        )
