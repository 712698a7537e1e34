"""Configuration module for the partner referral backend."""

from .database import DatabaseSettings, get_database_settings
from .settings import (
    CredentialSettings,
    LifecycleSettings,
    LoggingSettings,
    ResilienceSettings,
    Settings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "get_database_settings",
    "ResilienceSettings",
    "CredentialSettings",
    "LifecycleSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
]
