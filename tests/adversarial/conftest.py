"""
Shared fixtures for adversarial tests.

Every attack runs against both OTP store and ledger backends; the
PostgreSQL variants skip when no database is reachable.
"""

import bcrypt
import pytest

from src.adapters.repository import (
    InMemoryOtpRepository,
    InMemoryRegistrationLedger,
    PostgresOtpRepository,
    PostgresRegistrationLedger,
)
from src.domain.otp import OtpService
from src.domain.ports import OtpRepository, RegistrationLedger
from tests.conftest import TEST_HASH_ROUNDS


@pytest.fixture(params=["memory", "postgres"])
def backend(request: pytest.FixtureRequest) -> tuple[OtpRepository, RegistrationLedger]:
    """OTP store and ledger for one backend, emptied before each test."""
    if request.param == "postgres":
        pool = request.getfixturevalue("pool")
        request.getfixturevalue("clean_database")
        return PostgresOtpRepository(pool), PostgresRegistrationLedger(pool)
    return InMemoryOtpRepository(), InMemoryRegistrationLedger()


@pytest.fixture
def otp_store(backend: tuple[OtpRepository, RegistrationLedger]) -> OtpRepository:
    return backend[0]


@pytest.fixture
def ledger_store(backend: tuple[OtpRepository, RegistrationLedger]) -> RegistrationLedger:
    return backend[1]


@pytest.fixture
def service(otp_store: OtpRepository) -> OtpService:
    return OtpService(repository=otp_store, max_attempts=3, hash_rounds=TEST_HASH_ROUNDS)


def store_known_code(otp_store: OtpRepository, email: str, code: str) -> None:
    """Helper to store a code whose plaintext the test knows."""
    code_hash = bcrypt.hashpw(code.encode(), bcrypt.gensalt(TEST_HASH_ROUNDS)).decode()
    otp_store.store_code(email, code_hash, 300)
