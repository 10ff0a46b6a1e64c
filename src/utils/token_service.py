"""Identity token verification, account resolution and session token minting.

An inbound token is tried first as a federated (Google) ID token and, only if
it is not one, as a locally issued session token. The federated verifier is
injected so tests can substitute a stub issuer.
"""

import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

import requests
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    FEDERATED_CERTS_CACHE_SECONDS,
    FEDERATED_CERTS_URL,
    FEDERATED_ISSUERS,
    FEDERATED_TIMEOUT_SECONDS,
    GOOGLE_CLIENT_ID,
    JWT_ALGORITHM,
    JWT_SECRET_KEY,
)
from core.audit import log_security_event, log_user_action
from core.clock import Clock, utcnow
from core.exceptions import ConflictError, ErrorKind, UnauthorizedError
from models.user import UserModel

logger = logging.getLogger(__name__)


class TokenPath(str, Enum):
    FEDERATED = "federated"
    LOCAL = "local"


@dataclass(frozen=True)
class FederatedClaims:
    """Identity asserted by the federated provider."""

    subject: str
    email: str
    email_verified: bool = False
    name: Optional[str] = None
    picture: Optional[str] = None


@dataclass(frozen=True)
class VerifiedIdentity:
    path: TokenPath
    federated: Optional[FederatedClaims] = None
    local: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ResolvedIdentity:
    account: UserModel
    path: TokenPath


class FederatedTokenRejected(Exception):
    """The token is not a valid federated token. The local path may still accept it."""

    pass


class FederatedTokenVerifier(ABC):
    """Verifies tokens issued by the federated identity provider."""

    @abstractmethod
    def verify(self, token: str) -> FederatedClaims:
        """Verify signature, audience and issuer.

        Raises:
            FederatedTokenRejected: Format or signature problems.
            UnauthorizedError: Valid signature but untrusted issuer
                (kind invalid_issuer).
        """


class GoogleIdTokenVerifier(FederatedTokenVerifier):
    """Verifies Google ID tokens against the provider's published JWKS."""

    def __init__(
        self,
        client_id: str,
        issuers: List[str] = FEDERATED_ISSUERS,
        certs_url: str = FEDERATED_CERTS_URL,
        cache_seconds: int = FEDERATED_CERTS_CACHE_SECONDS,
        timeout: float = FEDERATED_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.client_id = client_id
        self.issuers = list(issuers)
        self.certs_url = certs_url
        self.cache_seconds = cache_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self._keys: Dict[str, Dict[str, Any]] = {}
        self._fetched_at = 0.0
        self._lock = threading.Lock()

    def _signing_keys(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            if self._keys and time.monotonic() - self._fetched_at < self.cache_seconds:
                return self._keys
            try:
                response = self.session.get(self.certs_url, timeout=self.timeout)
                response.raise_for_status()
                jwks = response.json()
            except (requests.RequestException, ValueError) as exc:
                raise FederatedTokenRejected(f"Could not load provider keys: {exc}") from exc
            self._keys = {key["kid"]: key for key in jwks.get("keys", []) if "kid" in key}
            self._fetched_at = time.monotonic()
            return self._keys

    def verify(self, token: str) -> FederatedClaims:
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise FederatedTokenRejected("Malformed token") from exc
        # Locally minted tokens are HS256 without a key id; skip the key fetch
        if header.get("alg") != "RS256" or "kid" not in header:
            raise FederatedTokenRejected("Not signed by the identity provider")

        key = self._signing_keys().get(header["kid"])
        if key is None:
            raise FederatedTokenRejected(f"Unknown signing key {header['kid']}")

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                audience=self.client_id,
                options={"verify_iss": False, "verify_at_hash": False},
            )
        except JWTError as exc:
            raise FederatedTokenRejected(str(exc)) from exc

        if claims.get("iss") not in self.issuers:
            raise UnauthorizedError(ErrorKind.INVALID_ISSUER, "Token issuer is not trusted")
        if not claims.get("sub") or not claims.get("email"):
            raise FederatedTokenRejected("Token is missing subject or email")

        return FederatedClaims(
            subject=str(claims["sub"]),
            email=str(claims["email"]),
            email_verified=bool(claims.get("email_verified")),
            name=claims.get("name"),
            picture=claims.get("picture"),
        )


def build_federated_verifier() -> Optional[FederatedTokenVerifier]:
    """Verifier from configuration, or None when no client id is set."""
    if not GOOGLE_CLIENT_ID:
        return None
    return GoogleIdTokenVerifier(GOOGLE_CLIENT_ID)


class IdentityTokenService:
    """Verifies inbound tokens, resolves accounts and mints session tokens."""

    def __init__(
        self,
        db: Session,
        federated_verifier: Optional[FederatedTokenVerifier] = None,
        secret_key: str = JWT_SECRET_KEY,
        algorithm: str = JWT_ALGORITHM,
        expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
        clock: Clock = utcnow,
    ):
        """Initialize IdentityTokenService.

        Args:
            db: SQLAlchemy Session.
            federated_verifier: Verifier for provider tokens; None disables
                the federated path.
            secret_key: Secret used to sign local session tokens.
            algorithm: Signing algorithm for local tokens.
            expire_minutes: Lifetime of minted tokens.
            clock: Returns the current naive UTC time.
        """
        self.db = db
        self.federated_verifier = federated_verifier
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_delta = timedelta(minutes=expire_minutes)
        self.clock = clock

    def mint(self, account: UserModel) -> str:
        """Create a signed session token for an account.

        The expiry is fixed at issuance; there is no refresh.
        """
        issued_at = self.clock()
        claims = {
            "sub": account.user_id,
            "role": account.role,
            "email_verified": bool(account.is_email_verified),
            "provider": account.provider,
            "iat": issued_at,
            "exp": issued_at + self.expire_delta,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def decode_local(self, token: str) -> Dict[str, Any]:
        """Decode a locally issued token.

        Raises:
            UnauthorizedError: token_expired or invalid_token.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise UnauthorizedError(
                ErrorKind.TOKEN_EXPIRED, "Token has expired. Please sign in again"
            ) from exc
        except JWTError as exc:
            raise UnauthorizedError(
                ErrorKind.INVALID_TOKEN, "Invalid authentication credentials"
            ) from exc
        if not payload.get("sub"):
            raise UnauthorizedError(ErrorKind.INVALID_TOKEN, "Invalid authentication credentials")
        return payload

    def verify(self, token: Optional[str]) -> VerifiedIdentity:
        """Verify a token through the federated path, then the local one.

        The local path is only tried when the federated verifier rejects the
        token's format or signature; an untrusted issuer is final.
        """
        if token is None or not token.strip():
            raise UnauthorizedError(ErrorKind.MISSING_TOKEN, "Authentication token is required")
        token = token.strip()

        federated_error: Optional[FederatedTokenRejected] = None
        if self.federated_verifier is not None:
            try:
                claims = self.federated_verifier.verify(token)
            except FederatedTokenRejected as exc:
                federated_error = exc
            except UnauthorizedError as exc:
                log_security_event("INVALID_TOKEN_ISSUER", exc.message)
                raise
            else:
                log_user_action(claims.subject, "TOKEN_VERIFIED", "Federated ID token verified")
                return VerifiedIdentity(path=TokenPath.FEDERATED, federated=claims)

        try:
            payload = self.decode_local(token)
        except UnauthorizedError as exc:
            log_security_event(
                "INVALID_TOKEN",
                f"local path: {exc.kind.value}; federated path: {federated_error or 'skipped'}",
            )
            raise
        return VerifiedIdentity(path=TokenPath.LOCAL, local=payload)

    def resolve(self, token: Optional[str]) -> ResolvedIdentity:
        """Verify a token and return the account it stands for.

        Federated identities are provisioned on first sight. Every successful
        resolution stamps last_login_at.

        Raises:
            UnauthorizedError: missing_token, invalid_issuer, token_expired,
                invalid_token or user_not_found.
            ConflictError: email_already_exists.
        """
        identity = self.verify(token)
        if identity.path is TokenPath.FEDERATED:
            account = self._resolve_federated(identity.federated)
        else:
            account = self._resolve_local(identity.local)

        account.last_login_at = self.clock()
        self.db.commit()
        self.db.refresh(account)
        return ResolvedIdentity(account=account, path=identity.path)

    def _resolve_federated(self, claims: FederatedClaims) -> UserModel:
        account = (
            self.db.query(UserModel)
            .filter(UserModel.federated_subject == claims.subject)
            .first()
        )
        if account is not None:
            if claims.picture and account.avatar != claims.picture:
                account.avatar = claims.picture
            return account

        email = claims.email.strip().lower()
        if self.db.query(UserModel).filter(UserModel.email == email).first() is not None:
            # Linking silently would hand the existing account to whoever controls
            # the federated identity.
            log_security_event(
                "FEDERATED_EMAIL_CONFLICT",
                f"Federated subject {claims.subject} presented existing email {email}",
            )
            raise ConflictError(
                ErrorKind.EMAIL_ALREADY_EXISTS,
                "An account with this email already exists. Sign in with your password.",
            )

        account = UserModel(
            user_id=str(uuid.uuid4()),
            email=email,
            provider="federated",
            federated_subject=claims.subject,
            role="user",
            display_name=claims.name,
            avatar=claims.picture,
            is_email_verified=True,
            is_active=True,
            is_banned=False,
            login_attempts=0,
            rating=0,
            total_answers=0,
            created_at=self.clock(),
        )
        self.db.add(account)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            existing = (
                self.db.query(UserModel)
                .filter(UserModel.federated_subject == claims.subject)
                .first()
            )
            if existing is not None:
                return existing
            raise ConflictError(
                ErrorKind.EMAIL_ALREADY_EXISTS,
                "An account with this email already exists. Sign in with your password.",
            ) from e

        log_user_action(account.user_id, "USER_CREATED_FEDERATED", f"Provisioned {email}")
        return account

    def _resolve_local(self, payload: Dict[str, Any]) -> UserModel:
        account = (
            self.db.query(UserModel)
            .filter(UserModel.user_id == str(payload["sub"]))
            .first()
        )
        if account is None:
            log_security_event("TOKEN_USER_NOT_FOUND", "Valid token for a missing account", payload["sub"])
            raise UnauthorizedError(ErrorKind.USER_NOT_FOUND, "User not found")
        return account
