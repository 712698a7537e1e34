"""
Domain layer for the partner referral program.

Entity read models, status enumerations, the error taxonomy, and the pure
functions applied to intake data (normalization and eligibility screening).
"""

from .errors import (
    ErrorKind,
    PartnerProgramError,
    ValidationError,
    IncompleteRecordError,
    ConflictError,
    NotFoundError,
    ReferentialError,
    InvalidTransitionError,
    AccessDeniedError,
    AuthenticationError,
    TransientDataError,
    QueryTimeoutError,
    RetriesExhaustedError,
    ReconciliationError,
)
from .aggregates import (
    PreRegistrationStatus,
    OperationStatus,
    Admin,
    Supervisor,
    Partner,
    PreRegistration,
    DocumentAttachment,
    Operation,
    PromotionResult,
    OperationStatistics,
)
from .normalization import (
    normalize_money,
    normalize_boolean,
    normalize_enum,
    normalize_int,
    normalize_text,
    normalize_documents,
)
from .eligibility import evaluate_eligibility
from .operation_fields import (
    OPERATION_FIELDS,
    DOCUMENT_SLOTS,
    normalize_operation_payload,
)

__all__ = [
    # Errors
    "ErrorKind",
    "PartnerProgramError",
    "ValidationError",
    "IncompleteRecordError",
    "ConflictError",
    "NotFoundError",
    "ReferentialError",
    "InvalidTransitionError",
    "AccessDeniedError",
    "AuthenticationError",
    "TransientDataError",
    "QueryTimeoutError",
    "RetriesExhaustedError",
    "ReconciliationError",
    # Aggregates
    "PreRegistrationStatus",
    "OperationStatus",
    "Admin",
    "Supervisor",
    "Partner",
    "PreRegistration",
    "DocumentAttachment",
    "Operation",
    "PromotionResult",
    "OperationStatistics",
    # Normalization
    "normalize_money",
    "normalize_boolean",
    "normalize_enum",
    "normalize_int",
    "normalize_text",
    "normalize_documents",
    "evaluate_eligibility",
    "OPERATION_FIELDS",
    "DOCUMENT_SLOTS",
    "normalize_operation_payload",
]
