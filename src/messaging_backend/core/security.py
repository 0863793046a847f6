"""Token issuance/validation and password hashing."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from messaging_backend.core.settings import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Return a salted one-way hash of ``password``."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Return True if ``password`` matches ``hashed``; malformed hashes never match."""
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


class TokenService:
    """Stateless signer/verifier for identity tokens.

    A token binds a user ID (``sub``) and a username to an expiry. Nothing is
    persisted; every check is made against the shared secret.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        expire_minutes: int | None = None,
    ) -> None:
        self._secret_key = secret_key or settings.secret_key
        self._algorithm = algorithm or settings.jwt_algorithm
        self._expire_minutes = (
            expire_minutes if expire_minutes is not None else settings.access_token_expire_minutes
        )

    def issue(self, username: str, user_id: str) -> str:
        """Create a signed, time-bounded token for the given identity."""
        expire = datetime.now(UTC) + timedelta(minutes=self._expire_minutes)
        claims: dict[str, Any] = {"sub": user_id, "username": username, "exp": expire}
        encoded: str = jwt.encode(claims, self._secret_key, algorithm=self._algorithm)
        return encoded

    def _decode(self, token: str | None) -> dict[str, Any] | None:
        if not token:
            return None
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except JWTError:
            return None
        if not payload.get("sub"):
            return None
        return payload

    def validate(self, token: str | None) -> bool:
        """Return True iff the signature verifies and the token has not expired."""
        return self._decode(token) is not None

    def extract_user_id(self, token: str | None) -> str | None:
        """Return the user ID of a valid token, ``None`` otherwise."""
        payload = self._decode(token)
        return None if payload is None else str(payload["sub"])

    def extract_username(self, token: str | None) -> str | None:
        """Return the username of a valid token, ``None`` otherwise."""
        payload = self._decode(token)
        if payload is None:
            return None
        username = payload.get("username")
        return str(username) if username is not None else None


_token_service: TokenService | None = None


def get_token_service() -> TokenService:
    """Return the process-wide token service."""
    global _token_service
    if _token_service is None:
        _token_service = TokenService()
    return _token_service
