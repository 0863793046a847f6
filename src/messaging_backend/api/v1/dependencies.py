"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from messaging_backend.core.errors import AuthError
from messaging_backend.core.security import TokenService, get_token_service
from messaging_backend.db.session import get_db
from messaging_backend.models import User
from messaging_backend.repositories import UserRepository

# HTTP Bearer scheme; missing headers are reported as AuthError (401) below.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
    tokens: TokenServiceDep,
) -> User:
    """Get the current authenticated user from the bearer token.

    Raises:
        AuthError: If the header is missing, the token does not validate, or
            its user no longer exists.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Missing bearer token")

    user_id = tokens.extract_user_id(credentials.credentials)
    if user_id is None:
        raise AuthError("Invalid or expired token")

    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise AuthError("Invalid or expired token")
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
