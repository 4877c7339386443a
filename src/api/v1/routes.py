"""
API v1 routes.

Defines REST endpoints for the email-gated hat registration API.
Handlers are sync so FastAPI runs them in its threadpool; chain writes
block for as long as block confirmation takes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import get_registration_service
from src.api.models import (
    ErrorResponse,
    SendOtpRequest,
    SendOtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from src.config.settings import Settings, get_settings
from src.domain.exceptions import InfraError, InvalidEmailDomain, InvalidIdentityCommitment
from src.domain.ports import RegistrationRequest, RegistrationState
from src.domain.registration import RegistrationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["v1"])

# Fixed messages per terminal state; collaborator errors are never echoed
_FAILURE_RESPONSES: dict[RegistrationState, tuple[int, str]] = {
    RegistrationState.OTP_REJECTED: (
        status.HTTP_400_BAD_REQUEST,
        "Invalid or expired OTP",
    ),
    RegistrationState.CREDENTIAL_MINT_FAILED: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Failed to mint hat, request a new OTP or contact support",
    ),
    RegistrationState.GROUP_ADMISSION_FAILED: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Failed to add account to Semaphore group, contact support",
    ),
    RegistrationState.LEDGER_WRITE_FAILED: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Could not store account, contact support",
    ),
    RegistrationState.INFRA_ERROR: (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Service temporarily unavailable, please retry",
    ),
}

_ALREADY_REGISTERED = (status.HTTP_409_CONFLICT, "Email already registered")


@router.post(
    "/send-otp",
    response_model=SendOtpResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Email outside the accepted domain"},
        422: {"description": "Validation error"},
        503: {"model": ErrorResponse, "description": "OTP store unavailable"},
    },
    summary="Request a one-time code",
    description="Submit an institutional email address. "
    "A one-time code will be sent to it out of band.",
)
def send_otp(
    request_data: SendOtpRequest,
    service: RegistrationService = Depends(get_registration_service),
    settings: Settings = Depends(get_settings),
) -> SendOtpResponse:
    """
    Issue a one-time code for an institutional email.

    - **email**: Email address on the accepted domain
    """
    try:
        normalized_email = service.request_otp(request_data.email)
    except InvalidEmailDomain:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email domain",
        ) from None
    except InfraError:
        logger.exception("Failed to issue OTP")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to send OTP",
        ) from None
    return SendOtpResponse(
        message="OTP sent successfully",
        email=normalized_email,
        expires_in_seconds=settings.otp_ttl_seconds,
    )


@router.post(
    "/verify-otp",
    response_model=VerifyOtpResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired OTP, or invalid identity commitment"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        422: {"description": "Validation error"},
        500: {"model": ErrorResponse, "description": "Hat mint, group admission or ledger write failed"},
        503: {"model": ErrorResponse, "description": "OTP store unavailable"},
    },
    summary="Verify OTP and register",
    description="Consume the one-time code, mint the hat to the address, "
    "add the identity commitment to the Semaphore group and record the binding. "
    "The steps are not transactional: a failure after the code is consumed "
    "is not rolled back.",
)
def verify_otp(
    request_data: VerifyOtpRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> VerifyOtpResponse:
    """
    Verify the one-time code and run the registration flow.

    - **email**: Email the code was sent to
    - **otp**: One-time code
    - **address**: Wearer address for the hat
    - **identityCommitment**: Semaphore identity commitment
    """
    try:
        outcome = service.verify_and_register(
            RegistrationRequest(
                email=request_data.email,
                otp=request_data.otp,
                address=request_data.address,
                identity_commitment=request_data.identity_commitment,
            )
        )
    except InvalidIdentityCommitment:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid identity commitment",
        ) from None

    if outcome.succeeded:
        return VerifyOtpResponse(
            message="OTP verified successfully",
            email=outcome.email,
            address=outcome.address,
        )

    if outcome.already_registered:
        status_code, detail = _ALREADY_REGISTERED
    else:
        status_code, detail = _FAILURE_RESPONSES[outcome.state]
    raise HTTPException(status_code=status_code, detail=detail)
