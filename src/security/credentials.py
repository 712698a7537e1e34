"""
Credential utilities - one-way hashing and temporary credential generation.

Uses bcrypt for hashing with a configurable work factor. Plaintext
credentials are never logged.
"""

import asyncio
import logging
import secrets

import bcrypt

from config.settings import CredentialSettings

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes
MAX_CREDENTIAL_BYTES = 72

# No look-alike characters (0/O, 1/l/I)
TEMPORARY_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"


class CredentialHasher:
    """
    Opaque hash/verify pair for account credentials.

    Usage:
        hasher = CredentialHasher(rounds=10)
        stored = hasher.hash("s3cret")
        hasher.verify("s3cret", stored)  # True
    """

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    @classmethod
    def from_settings(cls, settings: CredentialSettings) -> "CredentialHasher":
        return cls(rounds=settings.bcrypt_rounds)

    def hash(self, plaintext: str) -> str:
        """
        Hash a credential.

        Raises:
            ValueError: If the credential is empty or longer than 72 bytes.
        """
        if not plaintext:
            raise ValueError("Credential cannot be empty")

        encoded = plaintext.encode("utf-8")
        if len(encoded) > MAX_CREDENTIAL_BYTES:
            raise ValueError(f"Credential exceeds maximum length of {MAX_CREDENTIAL_BYTES} bytes")

        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(encoded, salt).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Check a credential against its hash. Malformed hashes never match."""
        if not plaintext or not hashed:
            return False

        encoded = plaintext.encode("utf-8")
        if len(encoded) > MAX_CREDENTIAL_BYTES:
            return False

        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Stored credential hash is malformed: {e}")
            return False

    async def hash_async(self, plaintext: str) -> str:
        """``hash`` run on a worker thread."""
        return await asyncio.to_thread(self.hash, plaintext)

    async def verify_async(self, plaintext: str, hashed: str) -> bool:
        return await asyncio.to_thread(self.verify, plaintext, hashed)


def generate_temporary_credential(length: int = 8) -> str:
    """
    Generate a human-shareable random credential.

    Args:
        length: Number of characters.

    Returns:
        Random string drawn from an alphabet without look-alike characters.
    """
    if length < 4:
        raise ValueError("Temporary credential must have at least 4 characters")
    return "".join(secrets.choice(TEMPORARY_ALPHABET) for _ in range(length))
