"""
Console OTP sender - EmailSender adapter for development.

No mail is sent: the code is written to the application log, where an
operator (or a test reading caplog) can pick it up.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol by logging the one-time code.

    Structural subtyping only. Swap for a real mail adapter before any
    deployment where the log is not private.
    """

    def send_otp(self, email: str, code: str) -> None:
        """
        Write "[OTP] Email: <email> Code: <code>" at INFO.

        Args:
            email: Normalized recipient address
            code: One-time code, leading zeros preserved
        """
        logger.info("[OTP] Email: %s Code: %s", email, code)
