"""
Domain layer - Pure business logic with zero framework imports.

This package contains the OTP service and the registration orchestrator
that binds a verified email to an on-chain hat and Semaphore group
membership. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .exceptions import (
    ChainError,
    InfraError,
    InvalidEmailDomain,
    InvalidIdentityCommitment,
    RegistrationError,
)
from .otp import OtpService
from .ports import (
    ChainOutcome,
    CredentialIssuer,
    EmailSender,
    GateDataEncoder,
    GroupAdmission,
    LedgerEntry,
    OtpCheck,
    OtpRepository,
    RegistrationLedger,
    RegistrationOutcome,
    RegistrationRequest,
    RegistrationState,
    parse_identity_commitment,
)
from .registration import RegistrationService

__all__ = [
    "ChainError",
    "ChainOutcome",
    "CredentialIssuer",
    "EmailSender",
    "GateDataEncoder",
    "GroupAdmission",
    "InfraError",
    "InvalidEmailDomain",
    "InvalidIdentityCommitment",
    "LedgerEntry",
    "OtpCheck",
    "OtpRepository",
    "OtpService",
    "RegistrationError",
    "RegistrationLedger",
    "RegistrationOutcome",
    "RegistrationRequest",
    "RegistrationService",
    "RegistrationState",
    "parse_identity_commitment",
]
