"""
Database layer for the partner referral program.

This module provides:
- SQLAlchemy table models for admins, partners, pre-registrations and operations
- Async database engine with bounded connection pooling
- A request/response store with multi-statement transactions
- One repository per table
"""

from .models import (
    Base,
    AdminRecord,
    PartnerRecord,
    PreRegistrationRecord,
    OperationRecord,
)

from .async_engine import (
    create_engine,
    get_async_engine,
    get_store,
    check_database_connection,
    init_database,
    close_database,
)

from .store import (
    QueryResult,
    QueryRunner,
    Store,
)

from .transaction import StoreTransaction

from .repositories import (
    AdminRepository,
    PartnerRepository,
    PreRegistrationRepository,
    OperationRepository,
)

__all__ = [
    # Models
    "Base",
    "AdminRecord",
    "PartnerRecord",
    "PreRegistrationRecord",
    "OperationRecord",
    # Engine
    "create_engine",
    "get_async_engine",
    "get_store",
    "check_database_connection",
    "init_database",
    "close_database",
    # Store
    "QueryResult",
    "QueryRunner",
    "Store",
    "StoreTransaction",
    # Repositories
    "AdminRepository",
    "PartnerRepository",
    "PreRegistrationRepository",
    "OperationRepository",
]
