"""
PostgreSQL repository adapters - Implement OtpRepository and RegistrationLedger.

This module provides the PostgreSQL implementations of the domain's
persistence ports using psycopg3 with raw SQL.

Single-use OTP Design:
----------------------
consume() runs in one transaction:

1. **SELECT ... FOR UPDATE** locks the email's row, so concurrent consume
   calls for the same email serialize. The first to commit sets consumed_at;
   every later caller then reads the consumed row and gets CONSUMED.

2. **Database time**: expiry is evaluated as `expires_at < NOW()` inside the
   same statement that takes the lock, so app server clock skew is irrelevant.

3. **bcrypt.checkpw()**: codes are stored hashed. The comparison always runs,
   against a pre-computed dummy hash when no row exists, so response time
   does not reveal whether a code was ever issued for the email.

Every psycopg error (including pool checkout timeouts) is raised as the
domain's InfraError so callers can tell "store down" from "bad code".
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path

import bcrypt
import psycopg
from psycopg_pool import ConnectionPool

from src.domain.exceptions import InfraError
from src.domain.ports import LedgerEntry, OtpCheck

logger = logging.getLogger(__name__)

# Pre-computed bcrypt hash for timing oracle prevention.
# Used when no code exists for the email so checkpw always runs.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_code_for_timing_safety", bcrypt.gensalt(10)).decode()


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate psycopg failures into InfraError."""
    try:
        yield
    except psycopg.Error as e:
        logger.error("Store operation %s failed: %s", operation, e)
        raise InfraError(f"Store unavailable during {operation}") from e


class PostgresOtpRepository:
    """
    Implements OtpRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def store_code(self, email: str, code_hash: str, ttl_seconds: int) -> None:
        """
        Store a fresh code, replacing whatever record the email had.

        Uses INSERT ... ON CONFLICT DO UPDATE so issue is a single atomic
        upsert. The replaced code, consumed or not, can no longer match.
        """
        sql = """
            INSERT INTO otp_codes (email, code_hash, issued_at, expires_at, consumed_at, failed_attempts)
            VALUES (%s, %s, NOW(), NOW() + %s, NULL, 0)
            ON CONFLICT (email) DO UPDATE
            SET code_hash = EXCLUDED.code_hash,
                issued_at = EXCLUDED.issued_at,
                expires_at = EXCLUDED.expires_at,
                consumed_at = NULL,
                failed_attempts = 0
        """

        with _store_errors("store_code"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (email, code_hash, timedelta(seconds=ttl_seconds)))
                conn.commit()

    def consume(self, email: str, code: str, max_attempts: int) -> OtpCheck:
        """
        Verify and consume the code for email under a row lock.

        Check order: existence, consumed, expired, attempt limit, code.
        A wrong code increments failed_attempts; reaching max_attempts
        reports LOCKED from then on.
        """
        select_sql = """
            SELECT code_hash, consumed_at IS NOT NULL, expires_at < NOW(), failed_attempts
            FROM otp_codes
            WHERE email = %s
            FOR UPDATE
        """

        consume_sql = """
            UPDATE otp_codes
            SET consumed_at = NOW()
            WHERE email = %s AND consumed_at IS NULL
        """

        increment_sql = """
            UPDATE otp_codes
            SET failed_attempts = failed_attempts + 1
            WHERE email = %s AND consumed_at IS NULL
        """

        with _store_errors("consume"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(select_sql, (email,))
                row = cursor.fetchone()

                stored_hash = row[0] if row is not None else _DUMMY_BCRYPT_HASH
                code_valid = bcrypt.checkpw(code.encode(), stored_hash.encode())

                if row is None:
                    conn.commit()
                    return OtpCheck.NOT_FOUND

                _, consumed, expired, failed_attempts = row

                if consumed:
                    conn.commit()
                    return OtpCheck.CONSUMED

                if expired:
                    conn.commit()
                    return OtpCheck.EXPIRED

                if failed_attempts >= max_attempts:
                    conn.commit()
                    return OtpCheck.LOCKED

                if not code_valid:
                    cursor.execute(increment_sql, (email,))
                    conn.commit()
                    if failed_attempts + 1 >= max_attempts:
                        return OtpCheck.LOCKED
                    return OtpCheck.INVALID_CODE

                cursor.execute(consume_sql, (email,))
                conn.commit()
                # FOR UPDATE guarantees the row was still unconsumed
                return OtpCheck.SUCCESS


class PostgresRegistrationLedger:
    """
    Implements RegistrationLedger protocol via psycopg3.

    Append-only: there is no update or delete path. The PRIMARY KEY on
    email is the deduplication guarantee.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def record(self, email: str, address: str) -> bool:
        """
        Append the binding; False if the email is already registered.

        Uses INSERT ... ON CONFLICT DO NOTHING so a duplicate is reported
        through rowcount instead of an IntegrityError.
        """
        sql = """
            INSERT INTO accounts (email, address, recorded_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (email) DO NOTHING
        """

        with _store_errors("record"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (email, address))
                conn.commit()
                return cursor.rowcount == 1

    def get(self, email: str) -> LedgerEntry | None:
        sql = "SELECT email, address, recorded_at FROM accounts WHERE email = %s"

        with _store_errors("get"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (email,))
                row = cursor.fetchone()

        if row is None:
            return None
        return LedgerEntry(email=row[0], address=row[1], recorded_at=row[2])


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
