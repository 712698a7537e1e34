"""
Field normalization for loosely-typed intake data.

Pure functions that turn form input (strings, locale-formatted numbers,
enum-like strings, attached documents) into the canonical values stored in
the database. They are applied before every write.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import re
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .errors import ValidationError

TRUTHY_TOKENS = frozenset({"1", "true", "on", "yes", "sim"})
FALSY_TOKENS = frozenset({"0", "false", "off", "no", "nao", "não"})

DEFAULT_DOCUMENT_TYPE = "application/octet-stream"

_MONEY_JUNK = re.compile(r"[^0-9,.]")
_DATA_URL = re.compile(r"^data:([^;,]+)?(?:;[^,]*)?;base64,", re.IGNORECASE)


def normalize_money(value: Any, fallback: float = 0.0) -> float:
    """
    Convert a monetary value to a non-negative float.

    Accepts numbers and strings such as ``"R$ 1.234,56"``, ``"1,234.56"``,
    ``"1234,5"`` or ``"2.500.000"``. When both separators are present the
    last one is the decimal mark; a single comma is a decimal mark; repeated
    commas or repeated dots are thousands separators.

    Args:
        value: Raw value.
        fallback: Returned when the value cannot be read as a finite,
            non-negative amount.

    Returns:
        Normalized amount.
    """
    if value is None or isinstance(value, bool):
        return fallback

    if isinstance(value, (int, float, Decimal)):
        amount = float(value)
        if not math.isfinite(amount) or amount < 0:
            return fallback
        return amount

    raw = str(value).strip()
    if raw.startswith("-"):
        return fallback

    text = _MONEY_JUNK.sub("", raw)
    if not text:
        return fallback

    comma, dot = text.rfind(","), text.rfind(".")
    if comma >= 0 and dot >= 0:
        if comma > dot:
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif comma >= 0:
        if text.count(",") == 1:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        amount = float(text)
    except ValueError:
        return fallback

    if not math.isfinite(amount):
        return fallback
    return amount


def normalize_boolean(value: Any, fallback: Optional[bool] = None) -> Optional[bool]:
    """
    Map truthy/falsy tokens to a canonical boolean.

    Truthy: ``1, true, on, yes, sim``; falsy: ``0, false, off, no, nao, não``
    (case-insensitive). Native booleans and the integers 1/0 are accepted.

    Args:
        value: Raw value.
        fallback: Returned for unrecognized input.

    Returns:
        True, False, or the fallback.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        return fallback
    if value is None:
        return fallback

    token = str(value).strip().lower()
    if token in TRUTHY_TOKENS:
        return True
    if token in FALSY_TOKENS:
        return False
    return fallback


def normalize_enum(value: Any, allowed: Iterable[str], default: Optional[str]) -> Optional[str]:
    """
    Return the allow-list member matching ``value``, else ``default``.

    Matching is case-insensitive and ignores surrounding whitespace. Never
    raises.
    """
    if value is None:
        return default
    candidate = str(getattr(value, "value", value)).strip().casefold()
    for member in allowed:
        member = str(getattr(member, "value", member))
        if member.casefold() == candidate:
            return member
    return default


def normalize_int(value: Any, fallback: Optional[int] = None) -> Optional[int]:
    """Read a non-negative integer from a number or digit-bearing string."""
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value if value >= 0 else fallback
    if isinstance(value, (float, Decimal)):
        if not math.isfinite(float(value)) or value < 0:
            return fallback
        return int(value)

    digits = re.sub(r"\D", "", str(value))
    return int(digits) if digits else fallback


def normalize_text(value: Any, max_length: Optional[int] = None) -> Optional[str]:
    """Trim a text value; blank input becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length is not None:
        text = text[:max_length]
    return text


def encoded_payload_info(payload: str) -> Dict[str, Any]:
    """
    Describe a base64 payload, optionally prefixed by a ``data:`` URL header.

    Returns:
        Dict with ``mime_type`` (None when no header) and ``size_bytes``, the
        decoded length estimated from the base64 text.
    """
    match = _DATA_URL.match(payload)
    mime_type = match.group(1) if match and match.group(1) else None
    data = payload[match.end():] if match else payload
    data = data.strip()

    if not data:
        return {"mime_type": mime_type, "size_bytes": 0}

    padding = len(data) - len(data.rstrip("="))
    try:
        size = len(base64.b64decode(data, validate=True))
    except (binascii.Error, ValueError):
        size = max(0, (len(data) * 3) // 4 - padding)
    return {"mime_type": mime_type, "size_bytes": size}


def _normalize_document(entry: Any, position: int) -> Dict[str, Any]:
    if not isinstance(entry, dict):
        raise ValidationError(
            f"Document entry {position} must be an object",
            field="documents",
        )

    payload = entry.get("encodedPayload")
    if payload is None:
        payload = entry.get("base64") or entry.get("data") or ""
    payload = str(payload)

    info = encoded_payload_info(payload) if payload else {"mime_type": None, "size_bytes": 0}

    size = normalize_int(entry.get("size"))
    if size is None:
        size = info["size_bytes"]

    compressed = normalize_int(entry.get("compressedSize"))
    if compressed is None:
        compressed = size

    return {
        "name": normalize_text(entry.get("name")) or f"documento-{position + 1}",
        "type": normalize_text(entry.get("type")) or info["mime_type"] or DEFAULT_DOCUMENT_TYPE,
        "size": size,
        "encodedPayload": payload,
        "compressedSize": compressed,
    }


def normalize_documents(value: Any) -> Optional[List[Dict[str, Any]]]:
    """
    Normalize a document slot to a JSON-serializable list.

    Accepts a single object, a list of objects, or a JSON string holding
    either. Each entry is shaped ``{name, type, size, encodedPayload,
    compressedSize}`` with missing sub-fields defaulted. Size and type are
    trusted as given: validating them belongs to the upload handler.

    Returns:
        List of document dicts, or None for absent input.

    Raises:
        ValidationError: Malformed JSON text or non-object entries.
    """
    if value is None:
        return None

    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValidationError(
                "Document slot is not valid JSON",
                field="documents",
                diagnostic=str(e),
            ) from e
        if value is None:
            return None

    if isinstance(value, dict):
        value = [value]

    if not isinstance(value, (list, tuple)):
        raise ValidationError("Document slot must be an object or a list", field="documents")

    return [_normalize_document(entry, i) for i, entry in enumerate(value)]
