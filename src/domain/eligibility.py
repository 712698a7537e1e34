"""
Eligibility screening for pre-registrations.

Single source of truth for the screening verdict: pre-registration creation
and the listing backfill both call ``evaluate_eligibility``.
"""

from typing import Any

from .aggregates import PreRegistrationStatus
from .normalization import normalize_boolean


def evaluate_eligibility(has_business_registration: Any, has_client_base: Any) -> PreRegistrationStatus:
    """
    Compute the screening verdict from the qualifying answers.

    Args:
        has_business_registration: Answer to "has a business registration (CNPJ)".
        has_client_base: Answer to "has a client base".

    Returns:
        REJECTED if either answer is a negative token (``NAO``, ``não``,
        ``no``, ``False``...), PRE_APPROVED otherwise.
    """
    if normalize_boolean(has_business_registration) is False:
        return PreRegistrationStatus.REJECTED
    if normalize_boolean(has_client_base) is False:
        return PreRegistrationStatus.REJECTED
    return PreRegistrationStatus.PRE_APPROVED
