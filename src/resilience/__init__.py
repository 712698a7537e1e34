"""Resilience patterns for data access.

Provides transient fault classification and a query executor that bounds
every call with a timeout and retries transient failures with backoff.
"""

from .faults import (
    FaultKind,
    classify_fault,
    is_transient,
)

from .retry import (
    ResilientExecutor,
    RetryConfig,
)

__all__ = [
    # Faults
    "FaultKind",
    "classify_fault",
    "is_transient",
    # Retry
    "ResilientExecutor",
    "RetryConfig",
]
