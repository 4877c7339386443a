"""
Registration domain service - OTP request and the registration orchestrator.

Registration State Machine
==========================

    START -> OTP_VERIFIED -> CREDENTIAL_ISSUED -> GROUP_ADMITTED -> RECORDED

Each arrow calls one collaborator. A failure on any arrow ends the attempt
in the matching terminal state:

    START             -> OTP_REJECTED            (bad, expired or used code)
    START             -> INFRA_ERROR             (OTP store unavailable)
    OTP_VERIFIED      -> CREDENTIAL_MINT_FAILED  (mint raised or reverted)
    CREDENTIAL_ISSUED -> GROUP_ADMISSION_FAILED  (preflight or write failed)
    GROUP_ADMITTED    -> LEDGER_WRITE_FAILED     (duplicate email or store error)

No distributed transaction
--------------------------
None of the steps can be undone by this service: the OTP is consumed by the
first step, and a minted hat or an admitted commitment stays on chain. Partial
failures are therefore NOT reconciled automatically. Every terminal failure
after OTP_VERIFIED is logged at ERROR with the email, the address and the
transaction references gathered so far, so an operator can reconcile by hand.
This is an accepted tradeoff, not an oversight.

Retry limitations
-----------------
The flow is not safely retriable end to end:
- after CREDENTIAL_MINT_FAILED, resubmitting the same request is rejected
  because the OTP is already consumed; the caller must request a new code
- after GROUP_ADMISSION_FAILED or LEDGER_WRITE_FAILED, a retry with a new code
  mints again for an address that may already wear the hat; whether that is
  harmless is up to the credential contract
- after RECORDED, a retry with a new code reaches LEDGER_WRITE_FAILED with
  already_registered set, after both chain writes have run again

Only INFRA_ERROR leaves no side effects behind and is safe to retry.
"""

import logging
from dataclasses import dataclass

from .exceptions import ChainError, InfraError, InvalidEmailDomain, InvalidIdentityCommitment
from .otp import OtpService
from .ports import (
    CredentialIssuer,
    EmailSender,
    GateDataEncoder,
    GroupAdmission,
    RegistrationLedger,
    RegistrationOutcome,
    RegistrationRequest,
    RegistrationState,
    parse_identity_commitment,
)

logger = logging.getLogger(__name__)


@dataclass
class RegistrationService:
    """
    Domain service for email-gated hat and group registration.

    All collaborators are injected; the service keeps no state between
    calls and takes no locks. The only concurrency-sensitive invariant,
    single use of an OTP, is enforced by the OTP repository.
    """

    otp: OtpService
    email_sender: EmailSender
    credential_issuer: CredentialIssuer
    gate_data_encoder: GateDataEncoder
    group_admission: GroupAdmission
    ledger: RegistrationLedger
    role_id: int
    allowed_email_domain: str = "pse.dev"

    def request_otp(self, email: str) -> str:
        """
        Issue a one-time code for email and send it out of band.

        Args:
            email: Requester email address (will be normalized)

        Returns:
            Normalized email address

        Raises:
            InvalidEmailDomain: Email is outside the accepted domain; no
                record is created
            InfraError: OTP store or email delivery unavailable
        """
        normalized_email = self._normalize_email(email)
        if not normalized_email.endswith("@" + self.allowed_email_domain.lower()):
            raise InvalidEmailDomain(normalized_email)

        code = self.otp.issue(normalized_email)
        self.email_sender.send_otp(normalized_email, code)
        return normalized_email

    def verify_and_register(self, request: RegistrationRequest) -> RegistrationOutcome:
        """
        Drive one registration attempt to a terminal state.

        Step failures are returned as terminal states on the outcome, never
        raised, so each state and its side-effect history can be inspected.

        Args:
            request: Email, OTP, wearer address and identity commitment

        Returns:
            RegistrationOutcome in a terminal state

        Raises:
            InvalidIdentityCommitment: Commitment is not a uint256; checked
                before the OTP is consumed, so nothing has happened yet
        """
        try:
            parse_identity_commitment(request.identity_commitment)
        except ValueError:
            raise InvalidIdentityCommitment(request.identity_commitment) from None

        outcome = RegistrationOutcome(
            state=RegistrationState.START,
            email=self._normalize_email(request.email),
            address=request.address,
            history=[RegistrationState.START],
        )

        # START -> OTP_VERIFIED
        try:
            verified = self.otp.verify(outcome.email, request.otp)
        except InfraError:
            logger.exception("OTP store unavailable for %s", outcome.email)
            return self._finish(outcome, RegistrationState.INFRA_ERROR)
        if not verified:
            return self._finish(outcome, RegistrationState.OTP_REJECTED)
        self._advance(outcome, RegistrationState.OTP_VERIFIED)

        # OTP_VERIFIED -> CREDENTIAL_ISSUED
        try:
            minted = self.credential_issuer.mint(outcome.address, self.role_id)
        except Exception as e:
            logger.exception("Credential mint raised for %s", outcome.address)
            outcome.credential_reference = self._broadcast_reference(e)
            return self._finish(outcome, RegistrationState.CREDENTIAL_MINT_FAILED)
        outcome.credential_reference = minted.reference
        # A mined but reverted transaction does not raise
        if not minted.succeeded:
            return self._finish(outcome, RegistrationState.CREDENTIAL_MINT_FAILED)
        self._advance(outcome, RegistrationState.CREDENTIAL_ISSUED)

        # CREDENTIAL_ISSUED -> GROUP_ADMITTED
        try:
            data = self.gate_data_encoder.encode(self.role_id)
            admitted = self.group_admission.admit(request.identity_commitment, data)
        except Exception as e:
            logger.exception("Group admission raised for %s", outcome.address)
            outcome.group_reference = self._broadcast_reference(e)
            return self._finish(outcome, RegistrationState.GROUP_ADMISSION_FAILED)
        outcome.group_reference = admitted.reference
        if not admitted.succeeded:
            return self._finish(outcome, RegistrationState.GROUP_ADMISSION_FAILED)
        self._advance(outcome, RegistrationState.GROUP_ADMITTED)

        # GROUP_ADMITTED -> RECORDED
        try:
            recorded = self.ledger.record(outcome.email, outcome.address)
        except InfraError:
            logger.exception("Ledger unavailable for %s", outcome.email)
            return self._finish(outcome, RegistrationState.LEDGER_WRITE_FAILED)
        if not recorded:
            outcome.already_registered = True
            return self._finish(outcome, RegistrationState.LEDGER_WRITE_FAILED)

        return self._finish(outcome, RegistrationState.RECORDED)

    def _broadcast_reference(self, error: Exception) -> str:
        """Transaction hash of a write that was sent before it failed, if any."""
        if isinstance(error, ChainError):
            return error.reference
        return ""

    def _advance(self, outcome: RegistrationOutcome, state: RegistrationState) -> None:
        outcome.state = state
        outcome.history.append(state)

    def _finish(
        self, outcome: RegistrationOutcome, state: RegistrationState
    ) -> RegistrationOutcome:
        """Move to a terminal state and log what happened on the way there."""
        self._advance(outcome, state)

        if state == RegistrationState.RECORDED:
            logger.info(
                "Registered %s as %s (credential tx %s, group tx %s)",
                outcome.email,
                outcome.address,
                outcome.credential_reference,
                outcome.group_reference,
            )
        elif state in (RegistrationState.OTP_REJECTED, RegistrationState.INFRA_ERROR):
            logger.info("Registration for %s ended in %s", outcome.email, state.value)
        else:
            # Irrevocable side effects already happened; keep what an
            # operator needs to reconcile by hand.
            logger.error(
                "Registration for %s ended in %s after %s: address=%s "
                "credential_tx=%s group_tx=%s already_registered=%s",
                outcome.email,
                state.value,
                " -> ".join(s.value for s in outcome.history[:-1]),
                outcome.address,
                outcome.credential_reference or "-",
                outcome.group_reference or "-",
                outcome.already_registered,
            )
        return outcome

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent storage and lookup.

        Applies: strip whitespace + lowercase
        """
        return email.strip().lower()
