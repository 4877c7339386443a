"""
OTP domain service - one-time code generation and single-use verification.

Lifecycle of an OTP record:
- issue(): a fresh code replaces any previous record for the email
- verify(): the first matching, unexpired, unconsumed attempt consumes it
- expiry is evaluated lazily on verify; nothing sweeps old records

Codes are stored as bcrypt hashes only; the plaintext goes to the email
sender and nowhere else. The consume transition is atomic in the
repository, so two racing verify() calls for the same email cannot both
return True.
"""

import logging
import secrets
from dataclasses import dataclass

import bcrypt

from .ports import OtpCheck, OtpRepository

logger = logging.getLogger(__name__)


@dataclass
class OtpService:
    """Generates, stores and verifies one-time codes keyed by email."""

    repository: OtpRepository
    ttl_seconds: int = 300
    code_length: int = 4
    max_attempts: int = 3
    hash_rounds: int = 10

    def issue(self, email: str) -> str:
        """
        Generate and store a new code for email.

        Returns the code so the caller can hand it to the email sender.
        It must never be echoed back to the requester.

        Raises:
            InfraError: Store unavailable
        """
        code = self._generate_code()
        self.repository.store_code(email, self._hash_code(code), self.ttl_seconds)
        return code

    def verify(self, email: str, code: str) -> bool:
        """
        Consume the code for email if it is valid.

        Fails closed: any business-rule failure returns False.

        Raises:
            InfraError: Store unavailable
        """
        if not self._is_well_formed(code):
            logger.info("OTP rejected for %s: malformed code", email)
            return False

        result = self.repository.consume(email, code, self.max_attempts)
        if result != OtpCheck.SUCCESS:
            logger.info("OTP rejected for %s: %s", email, result.value)
            return False
        return True

    def _generate_code(self) -> str:
        """
        Generate a cryptographically secure numeric code.

        Returns string to preserve leading zeros.
        """
        return "".join(secrets.choice("0123456789") for _ in range(self.code_length))

    def _is_well_formed(self, code: str) -> bool:
        """Exactly code_length ASCII digits; anything else never reaches bcrypt."""
        return len(code) == self.code_length and all(c in "0123456789" for c in code)

    def _hash_code(self, code: str) -> str:
        return bcrypt.hashpw(code.encode(), bcrypt.gensalt(rounds=self.hash_rounds)).decode()
