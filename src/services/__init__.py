"""
Services Module - Business logic for the partner referral program.

Application Services (orchestration):
- PreRegistrationService: screening submissions and their review
- PromotionService: pre-registration to partner conversion
- OperationService: loan operation intake and status lifecycle
- PartnerService / AdminService / SupervisorService: accounts

Infrastructure:
- ServiceContext: explicit dependencies shared by every service
- Logging configuration
"""

from .context import ServiceContext
from .admin_service import AdminService
from .partner_service import PartnerService
from .supervisor_service import SupervisorService
from .promotion_service import PromotionService
from .pre_registration_service import PreRegistrationService
from .operation_service import OperationService, parse_operation_status
from .logging_config import (
    configure_logging,
    get_logger,
    actor_context,
    actor_id_var,
)

__all__ = [
    "ServiceContext",
    "AdminService",
    "PartnerService",
    "SupervisorService",
    "PromotionService",
    "PreRegistrationService",
    "OperationService",
    "parse_operation_status",
    "configure_logging",
    "get_logger",
    "actor_context",
    "actor_id_var",
]
