"""
Explicit dependencies shared by the lifecycle services.

Services hold no mutable state of their own: everything they need (store
handle, resilient executor, credential hasher, business switches) travels in
a ``ServiceContext``, and the acting admin or partner id is passed on every
call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from sqlalchemy import exc as sa_exc

from config.settings import CredentialSettings, LifecycleSettings, Settings, get_settings
from database.async_engine import get_store
from database.store import Store
from domain.errors import ValidationError
from domain.normalization import normalize_text
from resilience.retry import ResilientExecutor
from security.credentials import CredentialHasher

T = TypeVar("T")

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


@dataclass
class ServiceContext:
    """
    Dependencies of every service call.

    Usage:
        ctx = ServiceContext.from_settings()
        partners = PartnerService(ctx)
    """
    store: Store
    executor: ResilientExecutor
    credentials: CredentialHasher
    credential_settings: CredentialSettings = field(default_factory=CredentialSettings)
    lifecycle: LifecycleSettings = field(default_factory=LifecycleSettings)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ServiceContext":
        settings = settings or get_settings()
        credential_settings = settings.credentials
        return cls(
            store=get_store(settings.database),
            executor=ResilientExecutor.from_settings(settings.resilience),
            credentials=CredentialHasher.from_settings(credential_settings),
            credential_settings=credential_settings,
            lifecycle=settings.lifecycle,
        )

    async def run(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """Run one data-access call through the resilient executor."""
        return await self.executor.execute(operation, description=description)


def require_text(payload: Mapping[str, Any], name: str, label: Optional[str] = None) -> str:
    """Trimmed value of a mandatory text field."""
    value = normalize_text(payload.get(name))
    if value is None:
        raise ValidationError(f"{label or name} is required", field=name)
    return value


def validate_email(value: Optional[str], name: str = "email") -> Optional[str]:
    """Return the email if it looks like one, raise otherwise. None passes."""
    if value is None:
        return None
    if not EMAIL_PATTERN.match(value):
        raise ValidationError("Invalid email address", field=name)
    return value


async def hash_credential(credentials: CredentialHasher, plaintext: str, name: str = "senha") -> str:
    """Hash a user-supplied credential, reporting bad input as a validation error."""
    try:
        return await credentials.hash_async(plaintext)
    except ValueError as e:
        raise ValidationError(str(e), field=name) from e


def unique_violation_field(error: sa_exc.IntegrityError, candidates: tuple) -> Optional[str]:
    """Best-effort name of the column behind a unique constraint violation."""
    text = str(error.orig if error.orig is not None else error).lower()
    for name in candidates:
        if name in text:
            return name
    return None
