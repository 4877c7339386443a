"""Repository adapters - Database and in-memory implementations."""

from .memory import InMemoryOtpRepository, InMemoryRegistrationLedger
from .postgres import PostgresOtpRepository, PostgresRegistrationLedger, run_migrations

__all__ = [
    "InMemoryOtpRepository",
    "InMemoryRegistrationLedger",
    "PostgresOtpRepository",
    "PostgresRegistrationLedger",
    "run_migrations",
]
