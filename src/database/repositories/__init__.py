"""Repository implementations for the partner referral store."""

from .admin_repository import AdminRepository
from .supervisor_repository import SupervisorRepository
from .partner_repository import PartnerRepository
from .pre_registration_repository import PreRegistrationRepository
from .operation_repository import OperationRepository

__all__ = [
    "AdminRepository",
    "SupervisorRepository",
    "PartnerRepository",
    "PreRegistrationRepository",
    "OperationRepository",
]
