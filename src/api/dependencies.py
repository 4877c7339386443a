"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
Adapters are built once in the app lifespan and kept on app.state.
"""

from fastapi import Depends, Request

from src.adapters.chain import AbiGateDataEncoder, HatsCredentialIssuer, SemaphoreGroupAdmission
from src.adapters.chain.client import ChainClient
from src.adapters.smtp.console import ConsoleEmailSender
from src.config.settings import Settings, get_settings
from src.domain.otp import OtpService
from src.domain.ports import OtpRepository, RegistrationLedger
from src.domain.registration import RegistrationService

# Module-level singletons - both are stateless
_email_sender = ConsoleEmailSender()
_gate_data_encoder = AbiGateDataEncoder()


def get_otp_repository(request: Request) -> OtpRepository:
    """Get the OTP repository created during app lifespan startup."""
    return request.app.state.otp_repository


def get_ledger(request: Request) -> RegistrationLedger:
    """Get the registration ledger created during app lifespan startup."""
    return request.app.state.ledger


def get_chain_client(request: Request) -> ChainClient:
    """Get the chain client created during app lifespan startup."""
    return request.app.state.chain_client


def get_email_sender() -> ConsoleEmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_otp_service(
    request: Request, settings: Settings = Depends(get_settings)
) -> OtpService:
    """Create OTP service with TTL, length and attempt limit from settings."""
    return OtpService(
        repository=get_otp_repository(request),
        ttl_seconds=settings.otp_ttl_seconds,
        code_length=settings.otp_length,
        max_attempts=settings.otp_max_attempts,
        hash_rounds=settings.otp_hash_rounds,
    )


def get_registration_service(
    request: Request, settings: Settings = Depends(get_settings)
) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires the OTP service, email sender, chain adapters and ledger
    into the domain orchestrator.
    """
    chain_client = get_chain_client(request)
    return RegistrationService(
        otp=get_otp_service(request, settings),
        email_sender=get_email_sender(),
        credential_issuer=HatsCredentialIssuer(chain_client, settings.hats_address),
        gate_data_encoder=_gate_data_encoder,
        group_admission=SemaphoreGroupAdmission(chain_client, settings.semaphore_address),
        ledger=get_ledger(request),
        role_id=settings.hat_id,
        allowed_email_domain=settings.allowed_email_domain,
    )
