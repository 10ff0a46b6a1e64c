"""Configuration module for the Q&A forum trust core.

This module provides centralized configuration management, including directory
paths, API server settings, token signing, lockout policy, verification code
policy, moderation constants and outbound gateway settings.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = Path(os.getenv("DATA_DIR", str(ROOT_DIR / DATA_DIR_NAME)))

# --- Storage Configuration ---

DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR}/forum.db")

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# "development" exposes issued codes in logs instead of relying on a mail relay
APP_ENV: str = os.getenv("APP_ENV", "development")

FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

# CORS allowed origins (comma-separated list)
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,"
    "http://127.0.0.1:3000",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# --- Session Token Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
JWT_ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))
)  # 7 days

# --- Federated Identity Provider Configuration ---

GOOGLE_CLIENT_ID: Optional[str] = os.getenv("GOOGLE_CLIENT_ID")

_FEDERATED_ISSUERS_STR: str = os.getenv(
    "FEDERATED_ISSUERS", "accounts.google.com,https://accounts.google.com"
)
FEDERATED_ISSUERS: List[str] = [
    issuer.strip() for issuer in _FEDERATED_ISSUERS_STR.split(",") if issuer.strip()
]
FEDERATED_CERTS_URL: str = os.getenv(
    "FEDERATED_CERTS_URL", "https://www.googleapis.com/oauth2/v3/certs"
)
FEDERATED_CERTS_CACHE_SECONDS: int = int(os.getenv("FEDERATED_CERTS_CACHE_SECONDS", "3600"))
FEDERATED_TIMEOUT_SECONDS: float = float(os.getenv("FEDERATED_TIMEOUT_SECONDS", "5"))

# --- Account Lockout Configuration ---

MAX_LOGIN_ATTEMPTS: int = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
LOCKOUT_MINUTES: int = int(os.getenv("LOCKOUT_MINUTES", "30"))

# --- Verification Code Configuration ---

VERIFICATION_CODE_LENGTH: int = int(os.getenv("VERIFICATION_CODE_LENGTH", "6"))
EMAIL_VERIFICATION_TTL_MINUTES: int = int(os.getenv("EMAIL_VERIFICATION_TTL_MINUTES", "10"))
PASSWORD_RESET_TTL_MINUTES: int = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "15"))

# A new code may be requested once the active one has at most this many
# seconds left.
CODE_RESEND_GRACE_SECONDS: int = int(os.getenv("CODE_RESEND_GRACE_SECONDS", "60"))

# Wrong guesses allowed against a single code before it stops verifying
CODE_MAX_ATTEMPTS: int = int(os.getenv("CODE_MAX_ATTEMPTS", "5"))

# How long after the reset code was verified the new password may be set
PASSWORD_RESET_WINDOW_MINUTES: int = int(os.getenv("PASSWORD_RESET_WINDOW_MINUTES", "5"))

# --- Moderation Configuration ---

ACCEPTED_ANSWER_REPUTATION: int = int(os.getenv("ACCEPTED_ANSWER_REPUTATION", "10"))
ANSWER_MIN_LENGTH: int = int(os.getenv("ANSWER_MIN_LENGTH", "50"))
ANSWER_MAX_LENGTH: int = int(os.getenv("ANSWER_MAX_LENGTH", "5000"))
PASSWORD_MIN_LENGTH: int = int(os.getenv("PASSWORD_MIN_LENGTH", "6"))

# --- Outbound Gateway Configuration ---

# External mirror (social publishing) relay; unset disables publication
MIRROR_PUBLISH_URL: Optional[str] = os.getenv("MIRROR_PUBLISH_URL")
MIRROR_API_TOKEN: Optional[str] = os.getenv("MIRROR_API_TOKEN")
MIRROR_TIMEOUT_SECONDS: float = float(os.getenv("MIRROR_TIMEOUT_SECONDS", "10"))

# Mail relay; unset falls back to logging the message
MAIL_RELAY_URL: Optional[str] = os.getenv("MAIL_RELAY_URL")
MAIL_API_TOKEN: Optional[str] = os.getenv("MAIL_API_TOKEN")
MAIL_TIMEOUT_SECONDS: float = float(os.getenv("MAIL_TIMEOUT_SECONDS", "10"))

# --- Authentication Configuration ---

# Admin token for admin registration (set via ADMIN_TOKEN environment variable)
ADMIN_TOKEN: Optional[str] = os.getenv("ADMIN_TOKEN")


def question_url(question_id: str) -> str:
    """Public URL of a question, used in mirrored posts."""
    return f"{FRONTEND_URL}/forum/questions/{question_id}"
