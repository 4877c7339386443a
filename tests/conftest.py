"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock for OTP expiry tests
- In-memory OTP store, ledger and OTP service
- A PostgreSQL pool (tests using it skip when no database is reachable)
"""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.memory import InMemoryOtpRepository, InMemoryRegistrationLedger
from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings
from src.domain.otp import OtpService

# Minimum bcrypt cost keeps hashing fast in tests
TEST_HASH_ROUNDS = 4


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def otp_repository(clock: FakeClock) -> InMemoryOtpRepository:
    return InMemoryOtpRepository(clock=clock)


@pytest.fixture
def ledger(clock: FakeClock) -> InMemoryRegistrationLedger:
    return InMemoryRegistrationLedger(clock=clock)


@pytest.fixture
def otp_service(otp_repository: InMemoryOtpRepository) -> OtpService:
    return OtpService(
        repository=otp_repository,
        ttl_seconds=300,
        code_length=4,
        max_attempts=3,
        hash_rounds=TEST_HASH_ROUNDS,
    )


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool against DATABASE_URL, or skip if unreachable."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=False,
    )
    try:
        pool.open(wait=True, timeout=3)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean OTP and ledger tables before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM otp_codes")
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield
