"""
Unit tests for API v1 routes.

Tests endpoint responses with mocked dependencies.
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.dependencies import get_registration_service
from src.api.v1.routes import router
from src.domain.exceptions import InfraError, InvalidEmailDomain, InvalidIdentityCommitment
from src.domain.ports import RegistrationOutcome, RegistrationRequest, RegistrationState
from src.domain.registration import RegistrationService

ADDRESS = "0x3bc1A0Ad72417f2d411118085256fC53CBdDd137"

VERIFY_BODY = {
    "email": "alice@pse.dev",
    "otp": "4821",
    "address": ADDRESS,
    "identityCommitment": "123456789",
}


def outcome(state: RegistrationState, already_registered: bool = False) -> RegistrationOutcome:
    return RegistrationOutcome(
        state=state,
        email="alice@pse.dev",
        address=ADDRESS,
        credential_reference="0xmint",
        already_registered=already_registered,
    )


@pytest.fixture
def mock_service() -> MagicMock:
    return MagicMock(spec=RegistrationService)


@pytest.fixture
def client(mock_service: MagicMock) -> TestClient:
    """Create test client with the registration service overridden."""
    app = FastAPI()
    app.include_router(router, prefix="/v1")
    app.dependency_overrides[get_registration_service] = lambda: mock_service
    return TestClient(app)


class TestSendOtpEndpoint:
    """Tests for POST /v1/send-otp endpoint."""

    def test_send_otp_success(self, client: TestClient, mock_service: MagicMock) -> None:
        """Issued code is never part of the response."""
        mock_service.request_otp.return_value = "alice@pse.dev"

        response = client.post("/v1/send-otp", json={"email": "Alice@pse.dev"})

        assert response.status_code == 200
        assert response.json() == {
            "message": "OTP sent successfully",
            "email": "alice@pse.dev",
            "expires_in_seconds": 300,
        }
        mock_service.request_otp.assert_called_once_with("Alice@pse.dev")

    def test_send_otp_wrong_domain_returns_400(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.request_otp.side_effect = InvalidEmailDomain("alice@example.com")

        response = client.post("/v1/send-otp", json={"email": "alice@example.com"})

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid email domain"}

    def test_send_otp_store_down_returns_503(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        """Infra error detail is not leaked to the client."""
        mock_service.request_otp.side_effect = InfraError("connection refused on 10.0.0.5")

        response = client.post("/v1/send-otp", json={"email": "alice@pse.dev"})

        assert response.status_code == 503
        assert response.json() == {"detail": "Failed to send OTP"}
        assert "10.0.0.5" not in response.text

    def test_send_otp_invalid_email_returns_422(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        response = client.post("/v1/send-otp", json={"email": "not-an-email"})

        assert response.status_code == 422
        mock_service.request_otp.assert_not_called()


class TestVerifyOtpEndpoint:
    """Tests for POST /v1/verify-otp endpoint."""

    def test_verify_otp_success(self, client: TestClient, mock_service: MagicMock) -> None:
        mock_service.verify_and_register.return_value = outcome(RegistrationState.RECORDED)

        response = client.post("/v1/verify-otp", json=VERIFY_BODY)

        assert response.status_code == 200
        assert response.json() == {
            "message": "OTP verified successfully",
            "email": "alice@pse.dev",
            "address": ADDRESS,
        }

    def test_verify_otp_passes_request_fields(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        """identityCommitment is mapped onto the domain request."""
        mock_service.verify_and_register.return_value = outcome(RegistrationState.RECORDED)

        client.post("/v1/verify-otp", json=VERIFY_BODY)

        mock_service.verify_and_register.assert_called_once_with(
            RegistrationRequest(
                email="alice@pse.dev",
                otp="4821",
                address=ADDRESS,
                identity_commitment="123456789",
            )
        )

    @pytest.mark.parametrize(
        ("state", "status_code", "detail"),
        [
            (RegistrationState.OTP_REJECTED, 400, "Invalid or expired OTP"),
            (
                RegistrationState.CREDENTIAL_MINT_FAILED,
                500,
                "Failed to mint hat, request a new OTP or contact support",
            ),
            (
                RegistrationState.GROUP_ADMISSION_FAILED,
                500,
                "Failed to add account to Semaphore group, contact support",
            ),
            (
                RegistrationState.LEDGER_WRITE_FAILED,
                500,
                "Could not store account, contact support",
            ),
            (
                RegistrationState.INFRA_ERROR,
                503,
                "Service temporarily unavailable, please retry",
            ),
        ],
    )
    def test_verify_otp_failure_states(
        self,
        client: TestClient,
        mock_service: MagicMock,
        state: RegistrationState,
        status_code: int,
        detail: str,
    ) -> None:
        """Each terminal failure maps to a fixed status and message."""
        mock_service.verify_and_register.return_value = outcome(state)

        response = client.post("/v1/verify-otp", json=VERIFY_BODY)

        assert response.status_code == status_code
        assert response.json() == {"detail": detail}
        assert "0xmint" not in response.text

    def test_verify_otp_already_registered_returns_409(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.verify_and_register.return_value = outcome(
            RegistrationState.LEDGER_WRITE_FAILED, already_registered=True
        )

        response = client.post("/v1/verify-otp", json=VERIFY_BODY)

        assert response.status_code == 409
        assert response.json() == {"detail": "Email already registered"}

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("otp", "abcd"),
            ("address", "0x1234"),
            ("identityCommitment", "not-a-number"),
            ("email", "alice"),
            ("identityCommitment", "9" * 78),
            ("otp", "\u0664\u0668\u0662\u0661"),
        ],
    )
    def test_verify_otp_invalid_body_returns_422(
        self, client: TestClient, mock_service: MagicMock, field: str, value: str
    ) -> None:
        """Malformed input never reaches the orchestrator."""
        response = client.post("/v1/verify-otp", json={**VERIFY_BODY, field: value})

        assert response.status_code == 422
        mock_service.verify_and_register.assert_not_called()

    def test_verify_otp_rejected_commitment_returns_400(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        """A commitment the orchestrator refuses maps to a fixed 400."""
        mock_service.verify_and_register.side_effect = InvalidIdentityCommitment("123456789")

        response = client.post("/v1/verify-otp", json=VERIFY_BODY)

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid identity commitment"}
