"""
Identity - Password hashing, signed bearer tokens and credential resolution.

Implements:
- PBKDF2-HMAC-SHA256 password hashing (salted, constant-time compare)
- Signed bearer tokens with expiry (HMAC-SHA256 over a base64 JSON payload)
- Resolution of an ``Authorization: Bearer ...`` header to an active account

Security:
- Credentials and hashes are never logged or echoed back
- Every failure mode of resolution raises the same Unauthenticated error
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Final, Optional

from sqlalchemy.orm import Session

from core.exceptions import Unauthenticated
from core.schema import Actor, AuditAction, Position
from core.store.models import User
from core.store.repository import UserRepository

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PBKDF2_ITERATIONS: Final[int] = 100_000
SALT_BYTES: Final[int] = 16
DEFAULT_TOKEN_TTL_HOURS: Final[int] = 24
BEARER_PREFIX: Final[str] = "bearer "


# =============================================================================
# Password Hashing
# =============================================================================


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """
    Hash a password using PBKDF2-HMAC-SHA256.

    Returns: salt$hash (both hex-encoded)
    """
    if salt is None:
        salt = secrets.token_hex(SALT_BYTES)

    hash_bytes = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
    )
    return f"{salt}${hash_bytes.hex()}"


def verify_password(password: str, stored_hash: Optional[str]) -> bool:
    """Verify a password against a stored hash."""
    if not stored_hash:
        return False
    try:
        salt, _ = stored_hash.split("$", 1)
        return hmac.compare_digest(hash_password(password, salt), stored_hash)
    except (ValueError, AttributeError):
        return False


# =============================================================================
# Tokens
# =============================================================================


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a bearer token."""

    user_id: int
    position: Position
    issued_at: int
    expires_at: int

    @property
    def is_expired(self) -> bool:
        return time.time() >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "sub": self.user_id,
            "position": self.position.value,
            "iat": self.issued_at,
            "exp": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenClaims":
        return cls(
            user_id=int(data["sub"]),
            position=Position(data["position"]),
            issued_at=int(data["iat"]),
            expires_at=int(data["exp"]),
        )


class TokenService:
    """
    Issues and verifies signed bearer tokens.

    Format: base64url(json_payload).hex_hmac_sha256_signature
    """

    def __init__(self, secret: str, ttl_hours: int = DEFAULT_TOKEN_TTL_HOURS):
        if not secret:
            raise ValueError("token secret is required")
        self._secret = secret.encode("utf-8")
        self.ttl_seconds = ttl_hours * 3600

    def _sign(self, payload_b64: str) -> str:
        return hmac.new(self._secret, payload_b64.encode(), hashlib.sha256).hexdigest()

    def issue(self, user_id: int, position: Position) -> tuple[str, TokenClaims]:
        """
        Issue a token for a user.

        Returns:
            (token, claims) - claims carry the expiry for the login response
        """
        now = int(time.time())
        claims = TokenClaims(
            user_id=user_id,
            position=position,
            issued_at=now,
            expires_at=now + self.ttl_seconds,
        )
        payload = json.dumps(claims.to_dict(), separators=(",", ":"), sort_keys=True)
        payload_b64 = base64.urlsafe_b64encode(payload.encode()).decode()
        return f"{payload_b64}.{self._sign(payload_b64)}", claims

    def verify(self, token: str) -> TokenClaims:
        """
        Verify and decode a token.

        Raises:
            Unauthenticated: If the token is malformed, tampered with or expired
        """
        try:
            payload_b64, signature = token.rsplit(".", 1)
        except (ValueError, AttributeError):
            raise Unauthenticated("Invalid token") from None

        if not hmac.compare_digest(signature.encode("utf-8"), self._sign(payload_b64).encode()):
            raise Unauthenticated("Invalid token")

        try:
            payload = base64.urlsafe_b64decode(payload_b64.encode()).decode()
            claims = TokenClaims.from_dict(json.loads(payload))
        except (ValueError, KeyError, TypeError):
            raise Unauthenticated("Invalid token") from None

        if claims.is_expired:
            raise Unauthenticated("Token has expired")
        return claims


# =============================================================================
# Credential Resolution
# =============================================================================


def extract_bearer(authorization: Optional[str]) -> str:
    """
    Extract the token from an Authorization header value.

    Raises:
        Unauthenticated: If the header is missing or not a Bearer credential
    """
    if not authorization:
        raise Unauthenticated("Access token required")
    if not authorization.lower().startswith(BEARER_PREFIX):
        raise Unauthenticated("Access token required")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthenticated("Access token required")
    return token


def resolve_user(session: Session, tokens: TokenService, authorization: Optional[str]) -> User:
    """
    Resolve a bearer credential to exactly one active user.

    Raises:
        Unauthenticated: No credential, invalid credential, or inactive account
    """
    claims = tokens.verify(extract_bearer(authorization))
    user = UserRepository.get_active(session, claims.user_id)
    if user is None:
        raise Unauthenticated("Invalid or expired token")
    return user


def resolve_actor(session: Session, tokens: TokenService, authorization: Optional[str]) -> Actor:
    """Resolve a bearer credential to the actor context for workflow operations."""
    return resolve_user(session, tokens, authorization).to_actor()


def authenticate(session: Session, email: str, password: str) -> User:
    """
    Authenticate a user by e-mail and password.

    Every failure is reported identically so the response does not reveal
    whether the account exists.

    Raises:
        Unauthenticated: If the credentials do not match an active account
    """
    user = UserRepository.get_by_email(session, email)
    if user is None or not user.is_active or not user.password_hash:
        logger.info("Login rejected: unknown or inactive account")
        raise Unauthenticated("Invalid credentials")

    if not verify_password(password, user.password_hash):
        logger.info("Login rejected for user %s: password mismatch", user.id)
        raise Unauthenticated("Invalid credentials")

    return user


# =============================================================================
# Login / Logout
# =============================================================================


class AuthService:
    """Login and logout, each recorded in the audit trail."""

    def __init__(self, database, tokens: TokenService):
        self.database = database
        self.tokens = tokens

    def login(self, email: str, password: str, client=None) -> dict:
        """
        Exchange credentials for a bearer token.

        Returns:
            {"access_token", "token_type", "expires_at", "user"}

        Raises:
            Unauthenticated: "Invalid credentials" for every failure
        """
        from core.workflow.audit import AuditTrail

        with self.database.session_scope() as session:
            user = authenticate(session, email or "", password or "")
            token, claims = self.tokens.issue(user.id, user.position_enum)
            if client is not None and client.ip_address:
                user.last_login_ip = client.ip_address
            AuditTrail.record(
                session, user.id, AuditAction.LOGIN, "User",
                user.id, user.full_name, None, client,
            )
            public = user.to_public_dict()

        logger.info("User %s logged in", public["id"])
        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_at": datetime.fromtimestamp(claims.expires_at, timezone.utc).isoformat(),
            "user": public,
        }

    def logout(self, actor: Actor, client=None) -> None:
        from core.workflow.audit import AuditTrail

        with self.database.session_scope() as session:
            AuditTrail.record(
                session, actor.id, AuditAction.LOGOUT, "User",
                actor.id, actor.full_name, None, client,
            )
        logger.info("User %s logged out", actor.id)
