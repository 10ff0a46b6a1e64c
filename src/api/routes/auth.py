"""Authentication routes.

This module handles HTTP endpoints for registration, login, token
verification, email verification and password reset. It also provides the
get_current_user dependency used by every authenticated route.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.errors import to_http_exception
from core.dependencies import (
    AccountGuardDep,
    TokenServiceDep,
    UserManagerDep,
    VerificationManagerDep,
)
from core.exceptions import ErrorKind, ForbiddenError, ForumError
from models.user import UserModel
from schemas.user import (
    CodeStatusResponse,
    CurrentUserResponse,
    EmailCodeRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenVerifyRequest,
    TokenVerifyResponse,
)
from utils.account_guard import AccountGuard
from utils.converters import model_to_user
from utils.verification_manager import CodePurpose

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# HTTP Bearer token security; a missing header is reported as missing_token
security = HTTPBearer(auto_error=False)

CODE_SENT_MESSAGE = "If the address is registered, a verification code has been sent."


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token_service: TokenServiceDep = None,
    guard: AccountGuardDep = None,
) -> UserModel:
    """Resolve the bearer token to an active account.

    Args:
        credentials: HTTP Bearer token credentials, if any.
        token_service: Injected IdentityTokenService instance.
        guard: Injected AccountGuard instance.

    Returns:
        Current account.

    Raises:
        HTTPException: If the token does not resolve or the account may not act.
    """
    token = credentials.credentials if credentials else None
    try:
        resolved = token_service.resolve(token)
        guard.ensure_active(resolved.account)
    except ForumError as e:
        raise to_http_exception(e)
    return resolved.account


def get_verified_user(current_user: UserModel = Depends(get_current_user)) -> UserModel:
    """Current user, required to have confirmed their email address."""
    try:
        AccountGuard.ensure_verified(current_user)
    except ForumError as e:
        raise to_http_exception(e)
    return current_user


def get_current_admin(current_user: UserModel = Depends(get_current_user)) -> UserModel:
    if current_user.role != "admin":
        raise to_http_exception(
            ForbiddenError(ErrorKind.INSUFFICIENT_ROLE, "Administrator role required")
        )
    return current_user


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a local account",
)
def register(
    req: RegisterRequest,
    request: Request,
    user_manager: UserManagerDep = None,
) -> RegisterResponse:
    """Register a new user.

    Registration requirements:
    - Admin: requires admin_token matching ADMIN_TOKEN
    - Everyone else: email and password; the email starts unverified

    Args:
        req: Registration request.
        request: Incoming request, for the client address.
        user_manager: Injected UserManager instance.

    Returns:
        RegisterResponse with the new account.
    """
    try:
        if req.admin_token:
            account, sent = user_manager.register_admin(
                req.email,
                req.password,
                req.admin_token,
                username=req.username,
                display_name=req.display_name,
                request_ip=_client_ip(request),
            )
        else:
            account, sent = user_manager.register(
                req.email,
                req.password,
                username=req.username,
                display_name=req.display_name,
                request_ip=_client_ip(request),
            )
    except ForumError as e:
        raise to_http_exception(e)

    message = (
        "Registered. Check your email for the verification code."
        if sent
        else "Registered. The verification email could not be sent; request a new code."
    )
    return RegisterResponse(user=model_to_user(account), verification_sent=sent, message=message)


@router.post("/login", response_model=LoginResponse, summary="Log in with a password")
def login(
    req: LoginRequest,
    user_manager: UserManagerDep = None,
) -> LoginResponse:
    """Login with email or username and password.

    Args:
        req: Login request.
        user_manager: Injected UserManager instance.

    Returns:
        LoginResponse with user information and JWT token.
    """
    try:
        account, token = user_manager.login(req.login, req.password)
    except ForumError as e:
        raise to_http_exception(e)
    return LoginResponse(user=model_to_user(account), token=token)


@router.post(
    "/verify-token",
    response_model=TokenVerifyResponse,
    summary="Exchange a federated or local token for a session token",
)
def verify_token(
    req: TokenVerifyRequest,
    token_service: TokenServiceDep = None,
    guard: AccountGuardDep = None,
) -> TokenVerifyResponse:
    """Resolve a token to an account, provisioning federated accounts on first use.

    Args:
        req: Token to verify.
        token_service: Injected IdentityTokenService instance.
        guard: Injected AccountGuard instance.

    Returns:
        TokenVerifyResponse with the account and a fresh session token.
    """
    try:
        resolved = token_service.resolve(req.token)
        guard.ensure_active(resolved.account)
    except ForumError as e:
        raise to_http_exception(e)
    return TokenVerifyResponse(
        user=model_to_user(resolved.account),
        token=token_service.mint(resolved.account),
        token_type=resolved.path.value,
    )


@router.get("/me", response_model=CurrentUserResponse, summary="Current user")
def get_current_user_info(
    current_user: UserModel = Depends(get_current_user),
) -> CurrentUserResponse:
    return CurrentUserResponse(user=model_to_user(current_user))


@router.post("/logout", response_model=MessageResponse, summary="Log out")
def logout(current_user: UserModel = Depends(get_current_user)) -> MessageResponse:
    """Logout endpoint.

    Note: Since we're using stateless JWT tokens, logout is handled
    client-side by removing the token. This endpoint exists for API
    consistency.
    """
    logger.info("User %s logged out", current_user.user_id)
    return MessageResponse(message="Logged out successfully")


@router.post("/email/send-code", response_model=MessageResponse, summary="Send email verification code")
def send_email_code(
    req: EmailRequest,
    request: Request,
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    try:
        user_manager.request_email_verification(req.email, request_ip=_client_ip(request))
    except ForumError as e:
        raise to_http_exception(e)
    return MessageResponse(message=CODE_SENT_MESSAGE)


@router.post("/email/verify", response_model=CurrentUserResponse, summary="Confirm email address")
def verify_email(
    req: EmailCodeRequest,
    user_manager: UserManagerDep = None,
) -> CurrentUserResponse:
    try:
        account = user_manager.confirm_email(req.email, req.code)
    except ForumError as e:
        raise to_http_exception(e)
    return CurrentUserResponse(user=model_to_user(account))


@router.get("/codes/status", response_model=CodeStatusResponse, summary="Active code status")
def code_status(
    email: str,
    purpose: CodePurpose = CodePurpose.EMAIL_VERIFICATION,
    codes: VerificationManagerDep = None,
) -> CodeStatusResponse:
    """Report whether an active code exists and when a new one may be requested.

    Args:
        email: Address the code was sent to.
        purpose: Which flow the code belongs to.
        codes: Injected VerificationManager instance.

    Returns:
        CodeStatusResponse.
    """
    info = codes.peek_active(email, purpose)
    if info is None:
        return CodeStatusResponse(has_active_code=False)
    return CodeStatusResponse(
        has_active_code=True,
        expires_at=info.expires_at,
        seconds_remaining=info.seconds_remaining,
        resend_available_in=info.resend_available_in,
        attempts_remaining=info.attempts_remaining,
    )


@router.post("/password/forgot", response_model=MessageResponse, summary="Request password reset code")
def forgot_password(
    req: EmailRequest,
    request: Request,
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    try:
        user_manager.request_password_reset(req.email, request_ip=_client_ip(request))
    except ForumError as e:
        raise to_http_exception(e)
    return MessageResponse(message=CODE_SENT_MESSAGE)


@router.post("/password/verify-code", response_model=MessageResponse, summary="Check password reset code")
def verify_reset_code(
    req: EmailCodeRequest,
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    try:
        user_manager.verify_password_reset_code(req.email, req.code)
    except ForumError as e:
        raise to_http_exception(e)
    return MessageResponse(message="Code verified. You can now set a new password.")


@router.post("/password/reset", response_model=MessageResponse, summary="Set a new password")
def reset_password(
    req: ResetPasswordRequest,
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    try:
        user_manager.reset_password(req.email, req.code, req.new_password)
    except ForumError as e:
        raise to_http_exception(e)
    return MessageResponse(message="Password has been reset. You can now log in.")
