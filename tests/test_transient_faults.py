"""Tests for transient fault classification."""

import asyncio
import errno
import sqlite3

import pytest
from sqlalchemy import exc as sa_exc

from domain.errors import ConflictError, QueryTimeoutError, ValidationError
from resilience.faults import FaultKind, classify_fault, is_transient


class _DriverError(Exception):
    """Stand-in for a DBAPI exception carrying a numeric code."""


class _PgError(Exception):
    def __init__(self, message, sqlstate):
        super().__init__(message)
        self.sqlstate = sqlstate


def _operational(orig):
    return sa_exc.OperationalError("SELECT 1", {}, orig)


class TestTransientConditions:
    """Errors that must be retried."""

    def test_executor_timeout(self):
        assert classify_fault(QueryTimeoutError(4.0)) is FaultKind.TRANSIENT

    def test_builtin_timeout(self):
        assert is_transient(TimeoutError())
        assert is_transient(asyncio.TimeoutError())

    def test_pool_exhaustion(self):
        error = sa_exc.TimeoutError("QueuePool limit of size 5 overflow 0 reached")
        assert classify_fault(error) is FaultKind.TRANSIENT

    @pytest.mark.parametrize("error", [
        ConnectionResetError("reset by peer"),
        ConnectionAbortedError("aborted"),
        BrokenPipeError("broken pipe"),
        OSError(errno.ETIMEDOUT, "Connection timed out"),
        OSError(errno.EHOSTUNREACH, "No route to host"),
        OSError(errno.ECONNRESET, "Connection reset"),
    ])
    def test_socket_errors(self, error):
        assert classify_fault(error) is FaultKind.TRANSIENT

    def test_sqlite_locked(self):
        assert is_transient(_operational(sqlite3.OperationalError("database is locked")))
        assert is_transient(sqlite3.OperationalError("database table is locked"))

    @pytest.mark.parametrize("code", [1205, 1213, 2006, 2013])
    def test_mysql_codes(self, code):
        assert is_transient(_operational(_DriverError(code, "server error")))

    @pytest.mark.parametrize("sqlstate", ["40P01", "40001", "55P03", "08006", "57P01"])
    def test_postgres_sqlstates(self, sqlstate):
        assert is_transient(_operational(_PgError("failure", sqlstate)))

    def test_invalidated_connection(self):
        error = sa_exc.DBAPIError("SELECT 1", {}, Exception("gone"), connection_invalidated=True)
        assert classify_fault(error) is FaultKind.TRANSIENT

    @pytest.mark.parametrize("message", [
        "Lost connection to MySQL server during query",
        "PROTOCOL_CONNECTION_LOST",
        "connect ETIMEDOUT 10.0.0.5:3306",
        "read ECONNRESET",
        "ER_LOCK_DEADLOCK: Deadlock found when trying to get lock",
        "server closed the connection unexpectedly",
    ])
    def test_message_markers(self, message):
        assert is_transient(_operational(Exception(message)))


class TestPermanentConditions:
    """Errors that must never be retried."""

    def test_integrity_error(self):
        error = sa_exc.IntegrityError(
            "INSERT", {}, sqlite3.IntegrityError("UNIQUE constraint failed: partners.cpf")
        )
        assert classify_fault(error) is FaultKind.PERMANENT

    def test_integrity_error_mentioning_lock(self):
        error = sa_exc.IntegrityError("INSERT", {}, Exception("deadlock while checking constraint"))
        assert classify_fault(error) is FaultKind.PERMANENT

    def test_programming_error(self):
        error = sa_exc.ProgrammingError("SELEC 1", {}, Exception("syntax error near SELEC"))
        assert classify_fault(error) is FaultKind.PERMANENT

    def test_programming_error_echoing_marker_text(self):
        error = sa_exc.ProgrammingError("SELECT 'lost connection'", {}, Exception("lost connection"))
        assert classify_fault(error) is FaultKind.PERMANENT

    def test_unknown_driver_code(self):
        assert not is_transient(_operational(_DriverError(1064, "syntax")))

    def test_non_transient_sqlstate(self):
        assert not is_transient(_operational(_PgError("bad input", "22P02")))

    def test_bare_sqlite_integrity(self):
        assert not is_transient(sqlite3.IntegrityError("FOREIGN KEY constraint failed"))

    @pytest.mark.parametrize("error", [
        ValidationError("bad field"),
        ConflictError("duplicate"),
        ValueError("nope"),
        KeyError("missing"),
        OSError(errno.ENOENT, "No such file"),
    ])
    def test_application_errors(self, error):
        assert classify_fault(error) is FaultKind.PERMANENT

    def test_int_args_outside_driver_are_permanent(self):
        assert not is_transient(RuntimeError(1213, "looks like a deadlock code"))
