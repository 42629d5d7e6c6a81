"""Pydantic request/response schemas."""

from accounts.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SessionClaims,
)
from accounts.schemas.health import HealthResponse

__all__ = [
    "ForgotPasswordRequest",
    "HealthResponse",
    "LoginRequest",
    "MeResponse",
    "MessageResponse",
    "RegisterRequest",
    "ResetPasswordRequest",
    "SessionClaims",
]
