"""
In-memory repository adapters - Process-local OtpRepository and RegistrationLedger.

Used for local development (storage_backend=memory) and tests. A single
threading.Lock guards each store, which makes consume() a true
check-and-set within one process. State is lost on restart and is not
shared between worker processes.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt

from src.domain.ports import LedgerEntry, OtpCheck


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _OtpRecord:
    code_hash: str
    issued_at: datetime
    expires_at: datetime
    consumed_at: datetime | None = None
    failed_attempts: int = 0


class InMemoryOtpRepository:
    """Implements OtpRepository protocol with a locked dict."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._records: dict[str, _OtpRecord] = {}
        self._lock = threading.Lock()

    def store_code(self, email: str, code_hash: str, ttl_seconds: int) -> None:
        now = self._clock()
        with self._lock:
            self._records[email] = _OtpRecord(
                code_hash=code_hash,
                issued_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )

    def consume(self, email: str, code: str, max_attempts: int) -> OtpCheck:
        with self._lock:
            record = self._records.get(email)
            if record is None:
                return OtpCheck.NOT_FOUND
            if record.consumed_at is not None:
                return OtpCheck.CONSUMED

            now = self._clock()
            if now > record.expires_at:
                return OtpCheck.EXPIRED
            if record.failed_attempts >= max_attempts:
                return OtpCheck.LOCKED

            if not bcrypt.checkpw(code.encode(), record.code_hash.encode()):
                record.failed_attempts += 1
                if record.failed_attempts >= max_attempts:
                    return OtpCheck.LOCKED
                return OtpCheck.INVALID_CODE

            record.consumed_at = now
            return OtpCheck.SUCCESS


class InMemoryRegistrationLedger:
    """Implements RegistrationLedger protocol; unique on email."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._entries: dict[str, LedgerEntry] = {}
        self._lock = threading.Lock()

    def record(self, email: str, address: str) -> bool:
        with self._lock:
            if email in self._entries:
                return False
            self._entries[email] = LedgerEntry(
                email=email, address=address, recorded_at=self._clock()
            )
            return True

    def get(self, email: str) -> LedgerEntry | None:
        with self._lock:
            return self._entries.get(email)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
