"""
Security module for the partner referral program.

Provides credential hashing and temporary credential generation.
"""

from .credentials import (
    CredentialHasher,
    generate_temporary_credential,
    MAX_CREDENTIAL_BYTES,
)

__all__ = [
    "CredentialHasher",
    "generate_temporary_credential",
    "MAX_CREDENTIAL_BYTES",
]
