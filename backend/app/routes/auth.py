"""
SpecDate Backend — Auth Route Handlers
========================================

What:  Registration, login, logout and the OTP round trip used by the
       sign-up screens.
Who:   Mobile auth screens (Landing, Register, OTP verification, Login).

    POST /api/register       public, 201 {user, token}
    POST /api/login          public, {user, token}
    POST /api/logout         bearer, revokes every token of the caller
    POST /api/request-otp    public, sends a six-digit code
    POST /api/verify-otp     public, {verified}
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user
from app.models import User
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    OtpRequest,
    OtpVerifyRequest,
    OtpVerifyResponse,
    RegisterRequest,
)
from app.schemas.common import ApiResponse, ErrorResponse, ok
from app.services.auth_service import auth_service
from app.services.otp_service import otp_service
from app.services.profile_service import profile_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post(
    "/register",
    status_code=201,
    response_model=ApiResponse[AuthResponse],
    responses={422: {"description": "Invalid input or value taken", "model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
):
    user, token = await auth_service.register(db, request)
    me = await profile_service.me(db, user)
    return ok(AuthResponse(user=me, token=token), "User registered successfully.")


@router.post(
    "/login",
    response_model=ApiResponse[AuthResponse],
    responses={401: {"description": "Bad credentials", "model": ErrorResponse}},
    summary="Exchange email and password for a bearer token",
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
):
    user, token = await auth_service.login(db, request)
    me = await profile_service.me(db, user)
    return ok(AuthResponse(user=me, token=token), "User logged in successfully.")


@router.post("/logout", response_model=ApiResponse[None], summary="Revoke the caller's tokens")
async def logout(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await auth_service.logout(db, user)
    return ok(message="Logged out successfully.")


@router.post("/request-otp", response_model=ApiResponse[None], summary="Send a verification code")
async def request_otp(request: OtpRequest):
    message = await otp_service.request(request.channel, request.target)
    return ok(message=message)


@router.post(
    "/verify-otp",
    response_model=ApiResponse[OtpVerifyResponse],
    summary="Check a verification code without consuming it",
)
async def verify_otp(request: OtpVerifyRequest):
    verified = otp_service.verify(request.channel, request.target, request.code)
    return ok(
        OtpVerifyResponse(verified=verified),
        "Code verified." if verified else "Invalid or expired code.",
    )
