"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

Orchestrator step failures are not raised: they are reported as terminal
RegistrationState values on a RegistrationOutcome. Exceptions here cover
input validation and collaborator outages.
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    pass


class InvalidEmailDomain(RegistrationError):
    """Email is not on the accepted institutional domain."""

    pass


class InvalidIdentityCommitment(RegistrationError):
    """Identity commitment is not a uint256; rejected before any side effect."""

    pass


class InfraError(RegistrationError):
    """A collaborator (store, ledger, chain node) is unreachable or timed out."""

    pass


class ChainError(InfraError):
    """
    Chain client failure (RPC error, preflight revert, receipt timeout).

    reference holds the transaction hash when the transaction was already
    broadcast before the failure, so it can still be reconciled.
    """

    def __init__(self, message: str, reference: str = "") -> None:
        super().__init__(message)
        self.reference = reference
