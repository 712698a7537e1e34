"""Transient fault classification for data-access errors.

Decides whether an error raised by a database attempt is worth retrying.
Transient conditions are connection timeouts, connection resets, unreachable
hosts, lock/deadlock contention and lost connections. Everything else,
constraint violations and malformed queries included, is permanent.
"""

from __future__ import annotations

import errno
import re
from enum import Enum
from typing import Any, Optional, Union

from sqlalchemy import exc as sa_exc

from domain.errors import PartnerProgramError, TransientDataError


class FaultKind(str, Enum):
    """Outcome of classifying a data-access error."""
    TRANSIENT = "transient"
    PERMANENT = "permanent"


TRANSIENT_ERRNOS = frozenset({
    errno.ETIMEDOUT,
    errno.ECONNRESET,
    errno.ECONNABORTED,
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
    errno.EPIPE,
})

# MySQL/MariaDB server and client error numbers
MYSQL_TRANSIENT_CODES = frozenset({
    1205,  # ER_LOCK_WAIT_TIMEOUT
    1213,  # ER_LOCK_DEADLOCK
    2003,  # CR_CONN_HOST_ERROR
    2006,  # CR_SERVER_GONE_ERROR
    2013,  # CR_SERVER_LOST
})

# PostgreSQL SQLSTATE codes; class 08 (connection exception) is matched by prefix
POSTGRES_TRANSIENT_SQLSTATES = frozenset({
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
    "57P01",  # admin_shutdown
    "57P02",  # crash_shutdown
    "57P03",  # cannot_connect_now
})

# SQLite primary result codes
SQLITE_TRANSIENT_CODES = frozenset({
    5,  # SQLITE_BUSY
    6,  # SQLITE_LOCKED
})

_TRANSIENT_MESSAGE = re.compile(
    r"ETIMEDOUT|ECONNRESET|EHOSTUNREACH|ER_LOCK_DEADLOCK|PROTOCOL_CONNECTION_LOST"
    r"|deadlock|lock wait timeout|database is locked|database table is locked"
    r"|lost connection|server has gone away|server closed the connection"
    r"|connection reset|connection timed out|no route to host",
    re.IGNORECASE,
)

# DBAPI error families whose message text is inspected. ProgrammingError and
# DataError messages can echo user SQL or data, so they are not.
_MESSAGE_CHECKED_DBAPI = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.InternalError,
)


_DRIVER_MODULES = frozenset({
    "aiomysql",
    "aiosqlite",
    "asyncpg",
    "MySQLdb",
    "psycopg",
    "psycopg2",
    "pymysql",
    "sqlite3",
})


def _is_driver_error(error: BaseException) -> bool:
    return type(error).__module__.split(".")[0] in _DRIVER_MODULES


def _driver_code(error: Any) -> Optional[Union[int, str]]:
    """Extract a driver error code (SQLSTATE, MySQL errno, SQLite code)."""
    for attr in ("sqlstate", "pgcode"):
        code = getattr(error, attr, None)
        if code:
            return str(code)

    sqlite_code = getattr(error, "sqlite_errorcode", None)
    if isinstance(sqlite_code, int):
        return sqlite_code & 0xFF

    args = getattr(error, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def _code_is_transient(code: Optional[Union[int, str]], error: Any) -> bool:
    if code is None:
        return False
    if isinstance(code, str):
        return code in POSTGRES_TRANSIENT_SQLSTATES or code.startswith("08")
    if getattr(error, "sqlite_errorcode", None) is not None:
        return code in SQLITE_TRANSIENT_CODES
    return code in MYSQL_TRANSIENT_CODES


def _os_error_is_transient(error: BaseException) -> bool:
    if isinstance(error, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
        return True
    return isinstance(error, OSError) and error.errno in TRANSIENT_ERRNOS


def _message_is_transient(error: BaseException) -> bool:
    return bool(_TRANSIENT_MESSAGE.search(str(error)))


def classify_fault(error: BaseException) -> FaultKind:
    """
    Classify a data-access error.

    Args:
        error: Exception raised by a data-access attempt.

    Returns:
        FaultKind.TRANSIENT if a retry may succeed, FaultKind.PERMANENT otherwise.
    """
    if isinstance(error, TransientDataError):
        return FaultKind.TRANSIENT

    # Application-level failures and constraint violations never heal by retrying
    if isinstance(error, (PartnerProgramError, sa_exc.IntegrityError)):
        return FaultKind.PERMANENT

    # Pool checkout timeout: the pool is exhausted, not broken
    if isinstance(error, sa_exc.TimeoutError):
        return FaultKind.TRANSIENT

    if isinstance(error, sa_exc.DBAPIError):
        if error.connection_invalidated:
            return FaultKind.TRANSIENT

        orig = error.orig
        if _code_is_transient(_driver_code(orig), orig):
            return FaultKind.TRANSIENT
        if isinstance(orig, BaseException) and _os_error_is_transient(orig):
            return FaultKind.TRANSIENT
        if isinstance(error, _MESSAGE_CHECKED_DBAPI) and _message_is_transient(orig or error):
            return FaultKind.TRANSIENT
        return FaultKind.PERMANENT

    if isinstance(error, sa_exc.SQLAlchemyError):
        return FaultKind.PERMANENT

    if isinstance(error, TimeoutError):
        return FaultKind.TRANSIENT

    if _os_error_is_transient(error):
        return FaultKind.TRANSIENT

    # Bare driver exceptions raised outside SQLAlchemy's wrapping
    if _is_driver_error(error):
        if _code_is_transient(_driver_code(error), error):
            return FaultKind.TRANSIENT
        if _message_is_transient(error):
            return FaultKind.TRANSIENT
        return FaultKind.PERMANENT

    if isinstance(error, OSError) and _message_is_transient(error):
        return FaultKind.TRANSIENT

    return FaultKind.PERMANENT


def is_transient(error: BaseException) -> bool:
    """Shorthand for ``classify_fault(error) is FaultKind.TRANSIENT``."""
    return classify_fault(error) is FaultKind.TRANSIENT
