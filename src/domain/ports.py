"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the value types that cross them. Adapters
implement these protocols.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol


class RegistrationState(str, Enum):
    """
    Registration orchestrator states.

    Happy path (strictly sequential):
        START -> OTP_VERIFIED -> CREDENTIAL_ISSUED -> GROUP_ADMITTED -> RECORDED

    Terminal failure exits:
        START             -> OTP_REJECTED | INFRA_ERROR
        OTP_VERIFIED      -> CREDENTIAL_MINT_FAILED
        CREDENTIAL_ISSUED -> GROUP_ADMISSION_FAILED
        GROUP_ADMITTED    -> LEDGER_WRITE_FAILED

    Nothing is rolled back on failure. See RegistrationService for the
    side effects already applied when each failure state is reached.
    """

    START = "START"
    OTP_VERIFIED = "OTP_VERIFIED"
    CREDENTIAL_ISSUED = "CREDENTIAL_ISSUED"
    GROUP_ADMITTED = "GROUP_ADMITTED"
    RECORDED = "RECORDED"

    OTP_REJECTED = "OTP_REJECTED"
    CREDENTIAL_MINT_FAILED = "CREDENTIAL_MINT_FAILED"
    GROUP_ADMISSION_FAILED = "GROUP_ADMISSION_FAILED"
    LEDGER_WRITE_FAILED = "LEDGER_WRITE_FAILED"
    INFRA_ERROR = "INFRA_ERROR"

    @property
    def is_terminal(self) -> bool:
        return self not in _IN_FLIGHT_STATES


_IN_FLIGHT_STATES = frozenset(
    {
        RegistrationState.START,
        RegistrationState.OTP_VERIFIED,
        RegistrationState.CREDENTIAL_ISSUED,
        RegistrationState.GROUP_ADMITTED,
    }
)


class OtpCheck(Enum):
    """
    Result of a single OTP consume attempt.

    Only SUCCESS means the record transitioned to consumed.
    """

    SUCCESS = "success"
    INVALID_CODE = "invalid_code"
    EXPIRED = "expired"
    CONSUMED = "consumed"
    LOCKED = "locked"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ChainOutcome:
    """Result of an on-chain write: execution status plus transaction hash."""

    succeeded: bool
    reference: str = ""


@dataclass(frozen=True)
class RegistrationRequest:
    """Transient input for one registration attempt. Never persisted."""

    email: str
    otp: str
    address: str
    identity_commitment: str


UINT256_LIMIT = 2**256


def parse_identity_commitment(identity_commitment: str) -> int:
    """
    Parse a decimal or 0x-prefixed hex commitment into a uint256.

    Raises:
        ValueError: Not a number, or outside 0 <= value < 2**256
    """
    value = identity_commitment.strip()
    if value[:2].lower() == "0x":
        digits, base, allowed = value[2:], 16, "0123456789abcdefABCDEF"
    else:
        digits, base, allowed = value, 10, "0123456789"
    # int() alone would also take signs, underscores and Unicode digits
    if not digits or any(c not in allowed for c in digits):
        raise ValueError("identity commitment is not a decimal or 0x hex number")
    commitment = int(digits, base)
    if commitment >= UINT256_LIMIT:
        raise ValueError("identity commitment does not fit in uint256")
    return commitment


@dataclass
class RegistrationOutcome:
    """Terminal result of one registration attempt."""

    state: RegistrationState
    email: str
    address: str
    credential_reference: str = ""
    group_reference: str = ""
    already_registered: bool = False
    history: list[RegistrationState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == RegistrationState.RECORDED


@dataclass(frozen=True)
class LedgerEntry:
    """Persisted email to address binding."""

    email: str
    address: str
    recorded_at: datetime


class OtpRepository(Protocol):
    """Port interface for OTP record persistence."""

    def store_code(self, email: str, code_hash: str, ttl_seconds: int) -> None:
        """
        Store a fresh bcrypt code hash for email, replacing any existing record.

        The replaced record (consumed or not) is no longer verifiable.

        Raises:
            InfraError: Store unavailable
        """
        ...

    def consume(self, email: str, code: str, max_attempts: int) -> OtpCheck:
        """
        Atomically verify and consume the code for email.

        The plaintext code is checked against the stored hash with bcrypt.

        Exactly one concurrent caller may observe the unconsumed record and
        receive SUCCESS. A mismatched code increments the failed attempt
        count; at max_attempts the record reports LOCKED.

        Raises:
            InfraError: Store unavailable
        """
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_otp(self, email: str, code: str) -> None:
        """
        Deliver a one-time code to an email address.

        Args:
            email: Recipient email address
            code: One-time code
        """
        ...


class CredentialIssuer(Protocol):
    """Port interface for minting a role credential (hat) to an address."""

    def mint(self, address: str, role_id: int) -> ChainOutcome:
        """
        Mint role_id to address.

        A reverted transaction is returned as ChainOutcome(succeeded=False),
        not raised.

        Raises:
            ChainError: Transport failure or timeout
        """
        ...


class GateDataEncoder(Protocol):
    """Port interface for encoding the gating call data."""

    def encode(self, role_id: int) -> bytes:
        """Encode role_id as call data for the group gating function."""
        ...


class GroupAdmission(Protocol):
    """Port interface for gated admission of an identity commitment."""

    def admit(self, identity_commitment: str, data: bytes) -> ChainOutcome:
        """
        Preflight then submit the gated group admission.

        Raises:
            ChainError: Preflight revert, transport failure or timeout
        """
        ...


class RegistrationLedger(Protocol):
    """Port interface for the append-only email to address ledger."""

    def record(self, email: str, address: str) -> bool:
        """
        Append an email to address binding.

        Returns:
            True if recorded, False if email is already registered

        Raises:
            InfraError: Store unavailable
        """
        ...

    def get(self, email: str) -> LedgerEntry | None:
        """Look up the binding for email, if any."""
        ...
