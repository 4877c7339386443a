"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from src.domain.ports import parse_identity_commitment


class SendOtpRequest(BaseModel):
    """Request model for OTP issuance."""

    email: EmailStr


class SendOtpResponse(BaseModel):
    """Response model for a sent OTP. The code itself is never returned."""

    message: str
    email: str
    expires_in_seconds: int


class VerifyOtpRequest(BaseModel):
    """Request model for OTP verification and registration."""

    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    otp: str = Field(
        ...,
        min_length=4,
        max_length=10,
        pattern=r"^[0-9]+$",
        description="Numeric one-time code received by email",
    )
    address: str = Field(
        ...,
        pattern=r"^0x[0-9a-fA-F]{40}$",
        description="Ethereum address that will wear the hat",
    )
    identity_commitment: str = Field(
        ...,
        alias="identityCommitment",
        pattern=r"^(0x[0-9a-fA-F]{1,64}|[0-9]{1,78})$",
        description="Semaphore identity commitment (decimal or 0x hex)",
    )

    @field_validator("identity_commitment")
    @classmethod
    def commitment_fits_uint256(cls, value: str) -> str:
        # 78 decimal digits can still exceed 2**256 - 1
        parse_identity_commitment(value)
        return value


class VerifyOtpResponse(BaseModel):
    """Response model for a completed registration."""

    message: str
    email: str
    address: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
