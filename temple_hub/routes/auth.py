"""
Authentication endpoints - email/phone signup with OTP activation, login and
password reset.
"""

from fastapi import APIRouter, Depends, Response, status
from temple_hub.core.session import SessionContext, get_session_context
from temple_hub.core.settings import settings
from temple_hub.models.user import (
    ForgotPasswordSendRequest,
    ForgotPasswordVerifyRequest,
    LoginRequest,
    ResendOtpRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifySignupRequest,
)
from temple_hub.services.account_service import get_account_service

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
    )


@router.post("/signup")
async def signup(request: SignupRequest, response: Response):
    """
    Start a signup.

    Creates a guest account (201) or reuses a placeholder account with the
    same email/phone (200); either way an OTP is sent and the client goes
    on to ``/verify-otp``.
    """
    outcome = get_account_service().signup(request)
    if outcome.created:
        response.status_code = status.HTTP_201_CREATED
    return outcome.to_dict()


@router.post("/verify-otp")
async def verify_signup_otp(request: VerifySignupRequest, response: Response):
    """Activate the account and start a session."""
    user, token = get_account_service().verify_signup(request.user_id, request.target, request.code)
    set_auth_cookie(response, token)
    return {"message": "OTP verified successfully. Account activated.", "user": user}


@router.post("/resend-otp")
async def resend_signup_otp(request: ResendOtpRequest):
    channel = get_account_service().resend_signup_otp(request.user_id)
    return {"message": "OTP sent", "next": "verify-otp", "target": channel.value, "userId": request.user_id}


@router.post("/login")
async def login(request: LoginRequest, response: Response):
    user, token = get_account_service().login(request.email, request.password)
    set_auth_cookie(response, token)
    return {"message": "Login successful", "user": user}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@router.get("/me")
async def me(session: SessionContext = Depends(get_session_context)):
    return {"user": get_account_service().me(session.user_id)}


@router.post("/forgot-password/send-otp")
async def forgot_password_send_otp(request: ForgotPasswordSendRequest):
    user_id = get_account_service().send_reset_otp(request.email)
    return {"success": True, "message": "OTP sent to your email", "userId": user_id}


@router.post("/forgot-password/verify-otp")
async def forgot_password_verify_otp(request: ForgotPasswordVerifyRequest):
    reset_token = get_account_service().verify_reset_otp(request.user_id, request.otp, request.channel)
    return {"success": True, "message": "OTP verified successfully", "resetToken": reset_token}


@router.post("/forgot-password/reset-password")
async def reset_password(request: ResetPasswordRequest):
    get_account_service().reset_password(request.token, request.new_password)
    return {"success": True, "message": "Password reset successfully"}
