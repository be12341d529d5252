"""
api/routes/v1/auth.py -- Account and session REST endpoints.

Routes:
  POST  /api/v1/auth/signup          -- register; sends verification mail; 201
  GET   /api/v1/auth/verify/{token}  -- confirm email (single use)
  POST  /api/v1/auth/verify          -- resend verification mail
  POST  /api/v1/auth/login           -- password login; returns bearer token
  GET   /api/v1/auth/logout          -- revoke the current session (requires auth)
  GET   /api/v1/auth/current         -- current account name/email (requires auth)
  PATCH /api/v1/auth/avatars         -- upload avatar, multipart field "avatar" (requires auth)
  PATCH /api/v1/auth/subscription    -- change subscription tier (requires auth)

Handlers are glue: they unpack the validated body, call AccountManager, and
wrap the result in a response model. AccountError subclasses propagate to the
exception handler in api/main.py.

Security:
  [C1] Login failures return one generic message for unknown email and wrong
       password -- enforced inside AccountManager.login().
  [M5] Cache-Control: no-store on the login response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from api.models import (
    AccountResponse,
    AvatarResponse,
    ErrorDetail,
    LoginRequest,
    MessageResponse,
    ResendVerificationRequest,
    SignupRequest,
    SubscriptionResponse,
    SubscriptionUpdate,
    TokenResponse,
)
from auth.accounts import AccountManager
from auth.dependencies import get_current_account
from auth.models import Account

# Auth policy:
# - POST  /auth/signup, /auth/login, /auth/verify:   public
# - GET   /auth/verify/{token}:                      public -- opened from the email link
# - GET   /auth/logout, /auth/current:               requires auth (get_current_account)
# - PATCH /auth/avatars, /auth/subscription:         requires auth (get_current_account)
router = APIRouter()


def _accounts(request: Request) -> AccountManager:
    return request.app.state.accounts


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=AccountResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> AccountResponse:
    """Create an account. Returns only name and email."""
    profile = _accounts(request).register(body.name, body.email, body.password)
    return AccountResponse(name=profile.name, email=profile.email)


@router.get("/auth/verify/{verification_token}", response_model=MessageResponse)
def confirm_verification(request: Request, verification_token: str) -> MessageResponse:
    """Confirm the email address behind a verification link. 404 once used."""
    _accounts(request).confirm_verification(verification_token)
    return MessageResponse(message="Verification successful")


@router.post("/auth/verify", response_model=MessageResponse)
def resend_verification(request: Request, body: ResendVerificationRequest) -> MessageResponse:
    """Re-send the verification email for an unverified account."""
    _accounts(request).resend_verification(body.email)
    return MessageResponse(message="Verification email sent")


@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer session token."""
    token = _accounts(request).login(body.email, body.password)
    resp = JSONResponse(status_code=200, content=TokenResponse(token=token).model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/logout", response_model=MessageResponse)
def logout(request: Request, account: Account = Depends(get_current_account)) -> MessageResponse:
    """Revoke the presented session token server-side."""
    _accounts(request).logout(account.id)
    return MessageResponse(message="Logout success")


@router.get("/auth/current", response_model=AccountResponse)
def current(request: Request, account: Account = Depends(get_current_account)) -> AccountResponse:
    profile = _accounts(request).current_account(account.id)
    return AccountResponse(name=profile.name, email=profile.email)


@router.patch("/auth/avatars", response_model=AvatarResponse)
async def update_avatar(
    request: Request,
    avatar: UploadFile = File(...),
    account: Account = Depends(get_current_account),
) -> AvatarResponse:
    """Replace the account's avatar with the uploaded image.

    Size guard: read up to the configured limit + 1 byte; reject if over.
    """
    max_bytes: int = request.app.state.avatar_max_bytes
    data = await avatar.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=ErrorDetail(
                code="file_too_large",
                message=f"Avatar must be {max_bytes // 1024} KB or smaller.",
            ).model_dump(),
        )
    avatar_url = _accounts(request).update_avatar(account.id, avatar.filename or "", data)
    return AvatarResponse(avatar_url=avatar_url)


@router.patch("/auth/subscription", response_model=SubscriptionResponse)
def update_subscription(
    request: Request,
    body: SubscriptionUpdate,
    account: Account = Depends(get_current_account),
) -> SubscriptionResponse:
    updated = _accounts(request).update_subscription(account.id, body.subscription.value)
    return SubscriptionResponse(email=updated.email, subscription=updated.subscription)
