"""
Error taxonomy for the partner referral backend.

Every error raised by the core carries a stable machine-readable ``kind``,
a human-readable ``message`` that is safe to show to users, a ``details``
dict with structured, display-safe context, and an optional ``diagnostic``
string holding internal detail (raw driver text) meant for logs only.

Usage:
    try:
        await promotion.promote(admin_id, pre_registration_id)
    except PartnerProgramError as exc:
        logger.warning(exc.message, extra={"extra_data": exc.log_context()})
        return exc.to_dict()
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Stable error kinds exposed to callers."""

    VALIDATION = "validation"
    INCOMPLETE_RECORD = "incomplete_record"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    REFERENTIAL = "referential"
    INVALID_TRANSITION = "invalid_transition"
    ACCESS_DENIED = "access_denied"
    AUTHENTICATION = "authentication"
    TRANSIENT = "transient"
    RETRIES_EXHAUSTED = "retries_exhausted"
    RECONCILIATION = "reconciliation"


class PartnerProgramError(Exception):
    """Base class for all errors raised by the core."""

    kind: ErrorKind = ErrorKind.VALIDATION
    default_message: str = "Request could not be processed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
        diagnostic: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        self.diagnostic = diagnostic
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """User-facing representation. Never includes the diagnostic."""
        data: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.details:
            data["details"] = dict(self.details)
        return data

    def log_context(self) -> Dict[str, Any]:
        """Representation for log records, diagnostic included."""
        data = self.to_dict()
        if self.diagnostic:
            data["diagnostic"] = self.diagnostic
        return data


class ValidationError(PartnerProgramError):
    """Missing required field or invalid value. Never retried."""

    kind = ErrorKind.VALIDATION
    default_message = "Invalid request data"

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        if field:
            details.setdefault("field", field)
        super().__init__(message, details=details, **kwargs)
        self.field = field


class IncompleteRecordError(ValidationError):
    """A stored record lacks the fields required for the requested step."""

    kind = ErrorKind.INCOMPLETE_RECORD
    default_message = "Record is incomplete"

    def __init__(self, message: Optional[str] = None, *, missing_fields: Optional[list] = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        if missing_fields:
            details["missing_fields"] = list(missing_fields)
        super().__init__(message, details=details, **kwargs)
        self.missing_fields = list(missing_fields or [])


class ConflictError(PartnerProgramError):
    """Uniqueness violation. The caller must resolve it."""

    kind = ErrorKind.CONFLICT
    default_message = "Record already exists"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        field: Optional[str] = None,
        existing_id: Optional[int] = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", None) or {}
        if field:
            details.setdefault("field", field)
        if existing_id is not None:
            details.setdefault("existing_id", existing_id)
        super().__init__(message, details=details, **kwargs)
        self.field = field
        self.existing_id = existing_id


class NotFoundError(PartnerProgramError):
    """Referenced entity is absent."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Record not found"

    def __init__(self, entity: str, entity_id: Any, message: Optional[str] = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        details.update({"entity": entity, "id": entity_id})
        super().__init__(message or f"{entity} {entity_id} not found", details=details, **kwargs)
        self.entity = entity
        self.entity_id = entity_id


class ReferentialError(PartnerProgramError):
    """A write references a parent record that does not exist."""

    kind = ErrorKind.REFERENTIAL
    default_message = "Referenced record does not exist"


class InvalidTransitionError(PartnerProgramError):
    """Status change not permitted from the current state."""

    kind = ErrorKind.INVALID_TRANSITION
    default_message = "Status transition not allowed"

    def __init__(self, current_status: Any, target_status: Any, message: Optional[str] = None, **kwargs: Any):
        current = getattr(current_status, "value", current_status)
        target = getattr(target_status, "value", target_status)
        details = kwargs.pop("details", None) or {}
        details.update({"current_status": current, "target_status": target})
        super().__init__(
            message or f"Cannot move from {current} to {target}",
            details=details,
            **kwargs,
        )
        self.current_status = current
        self.target_status = target


class AccessDeniedError(PartnerProgramError):
    """Acting administrator or supervisor does not exist."""

    kind = ErrorKind.ACCESS_DENIED
    default_message = "Access denied"


class AuthenticationError(PartnerProgramError):
    """Unknown identity or wrong credential."""

    kind = ErrorKind.AUTHENTICATION
    default_message = "Invalid credentials"


class TransientDataError(PartnerProgramError):
    """Data-access failure expected to succeed on retry."""

    kind = ErrorKind.TRANSIENT
    default_message = "Temporary data access failure"


class QueryTimeoutError(TransientDataError):
    """An attempt did not finish within its per-attempt timeout."""

    default_message = "DB query timeout"

    def __init__(self, timeout: float, description: Optional[str] = None):
        super().__init__(
            details={"timeout": timeout},
            diagnostic=f"{description or 'query'} exceeded {timeout:.3f}s",
        )
        self.timeout = timeout


class RetriesExhaustedError(PartnerProgramError):
    """Transient failures persisted past the retry budget."""

    kind = ErrorKind.RETRIES_EXHAUSTED
    default_message = "Data store unavailable, try again later"

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(
            details={"attempts": attempts},
            diagnostic=f"{type(last_error).__name__}: {last_error}",
        )
        self.attempts = attempts
        self.last_error = last_error


class ReconciliationError(PartnerProgramError):
    """A multi-step write could not be completed consistently."""

    kind = ErrorKind.RECONCILIATION
    default_message = "Operation could not be completed consistently and was rolled back"
