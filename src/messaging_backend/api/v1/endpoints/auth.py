# src/messaging_backend/api/v1/endpoints/auth.py
"""Authentication endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from messaging_backend.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from messaging_backend.services.auth_service import AuthResult, AuthService, get_auth_service

from ..dependencies import SessionDep

router = APIRouter(prefix="/auth", tags=["authentication"])

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


def _to_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(token=result.token, user=UserResponse.model_validate(result.user))


@router.post(
    "/register",
    summary="Register a new account",
    status_code=status.HTTP_200_OK,
    response_model=AuthResponse,
)
async def register_user(
    payload: RegisterRequest,
    db: SessionDep,
    auth: AuthServiceDep,
) -> AuthResponse:
    """Create an account and return a token with the sanitized user."""
    result = auth.register(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
    )
    return _to_response(result)


@router.post(
    "/login",
    summary="Authenticate with username and password",
    status_code=status.HTTP_200_OK,
    response_model=AuthResponse,
)
async def login_user(
    payload: LoginRequest,
    db: SessionDep,
    auth: AuthServiceDep,
) -> AuthResponse:
    """Check credentials, mark the user online and return a fresh token."""
    return _to_response(auth.login(db, payload.username, payload.password))
