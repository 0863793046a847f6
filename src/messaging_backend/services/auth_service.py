"""Registration and login against the user store."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from messaging_backend.core.errors import ConflictError, CredentialsError
from messaging_backend.core.security import (
    TokenService,
    get_token_service,
    hash_password,
    verify_password,
)
from messaging_backend.db.time import utcnow
from messaging_backend.models import User
from messaging_backend.repositories import UserRepository

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
USERNAME_TAKEN = "Username already exists"


@dataclass(frozen=True)
class AuthResult:
    """Token issued for ``user`` after a successful register or login."""

    token: str
    user: User


class AuthService:
    """Service handling account creation and credential checks."""

    def __init__(self, token_service: TokenService | None = None) -> None:
        self._tokens = token_service or get_token_service()

    def register(
        self,
        db: Session,
        username: str,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> AuthResult:
        """Create an account and issue a token for it.

        Raises:
            ConflictError: If the username is already registered, including
                when a concurrent registration wins the unique constraint.
        """
        repo = UserRepository(db)
        if repo.exists_by_username(username):
            logger.info("Registration rejected: username %s already exists", username)
            raise ConflictError(USERNAME_TAKEN)

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            display_name=display_name or username,
            contacts=[],
        )
        try:
            user = repo.add(user)
        except IntegrityError as err:
            db.rollback()
            logger.info("Registration lost unique-username race for %s", username)
            raise ConflictError(USERNAME_TAKEN) from err

        logger.info("Registered user %s (%s)", user.username, user.id)
        return AuthResult(token=self._tokens.issue(user.username, user.id), user=user)

    def login(self, db: Session, username: str, password: str) -> AuthResult:
        """Check credentials, mark the user online and issue a token.

        Unknown usernames and wrong passwords raise the same error.
        """
        repo = UserRepository(db)
        user = repo.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login attempt for username %s", username)
            raise CredentialsError(INVALID_CREDENTIALS)

        user.is_online = True
        user.last_seen = utcnow()
        user = repo.save(user)
        logger.info("User %s logged in", user.id)
        return AuthResult(token=self._tokens.issue(user.username, user.id), user=user)


def get_auth_service() -> AuthService:
    """Return an auth service bound to the shared token service."""
    return AuthService()
