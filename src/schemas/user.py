"""User and authentication schema definitions."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """Public view of an account. Never carries secrets."""

    user_id: str
    email: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    provider: str = Field(description="'local' or 'federated'")
    role: str = Field(description="'user', 'expert' or 'admin'")
    is_email_verified: bool = False
    is_active: bool = True
    is_banned: bool = False
    banned_until: Optional[datetime] = None
    banned_reason: Optional[str] = None
    rating: int = 0
    total_answers: int = 0
    last_login_at: Optional[datetime] = None
    created_at: datetime


class RegisterRequest(BaseModel):
    email: str
    password: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    admin_token: Optional[str] = Field(
        default=None,
        description="Registers an administrator when it matches ADMIN_TOKEN.",
    )


class RegisterResponse(BaseModel):
    user: User
    verification_sent: bool
    message: str


class LoginRequest(BaseModel):
    login: str = Field(description="Email or username.")
    password: str


class LoginResponse(BaseModel):
    user: User
    token: str


class TokenVerifyRequest(BaseModel):
    token: str


class TokenVerifyResponse(BaseModel):
    user: User
    token: str
    token_type: str = Field(description="Which path resolved the token: 'federated' or 'local'.")


class CurrentUserResponse(BaseModel):
    user: User


class EmailRequest(BaseModel):
    email: str


class EmailCodeRequest(BaseModel):
    email: str
    code: str


class ResetPasswordRequest(BaseModel):
    email: str
    code: str
    new_password: str


class CodeStatusResponse(BaseModel):
    has_active_code: bool
    expires_at: Optional[datetime] = None
    seconds_remaining: int = 0
    resend_available_in: int = 0
    attempts_remaining: int = 0


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class BanRequest(BaseModel):
    reason: str
    until: Optional[datetime] = Field(
        default=None,
        description="UTC end of the ban; omit for a permanent ban.",
    )


class RoleChangeRequest(BaseModel):
    role: str


class ActiveRequest(BaseModel):
    active: bool
