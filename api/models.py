"""
API request and response models for the account service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models validate shape only (lengths, email pattern). The account
manager repeats the domain preconditions so non-HTTP callers get the same
guarantees.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.accounts import EMAIL_PATTERN, MIN_PASSWORD_LENGTH, normalize_email, password_fits_bcrypt
from auth.passwords import MAX_PASSWORD_BYTES

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SubscriptionEnum(str, Enum):
    starter = "starter"
    pro = "pro"
    business = "business"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _EmailBody(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value: object) -> object:
        """Normalize before the pattern check so mixed-case input is accepted."""
        return normalize_email(value) if isinstance(value, str) else value


class _CredentialsBody(_EmailBody):
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    @field_validator("password")
    @classmethod
    def password_within_bcrypt_limit(cls, value: str) -> str:
        if not password_fits_bcrypt(value):
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class SignupRequest(_CredentialsBody):
    """Request body for POST /api/v1/auth/signup."""

    name: str = Field(min_length=1, max_length=255)


class LoginRequest(_CredentialsBody):
    """Request body for POST /api/v1/auth/login."""


class ResendVerificationRequest(_EmailBody):
    """Request body for POST /api/v1/auth/verify."""


class SubscriptionUpdate(BaseModel):
    """Request body for PATCH /api/v1/auth/subscription."""

    subscription: SubscriptionEnum


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public account fields. Digests and tokens are never part of this model."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str


class TokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class AvatarResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    avatar_url: str = Field(alias="avatarURL")


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    subscription: SubscriptionEnum


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
