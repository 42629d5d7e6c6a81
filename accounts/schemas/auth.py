"""Request/response schemas for account endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Request fields are optional so that missing values reach the rule validator
# and come back in its error list instead of a 422.


class RegisterRequest(BaseModel):
    """New account details."""

    username: str | None = Field(default=None, description="Username (2-25 chars)")
    password: str | None = Field(default=None, description="Password")
    email: str | None = Field(default=None, description="Email address")


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str | None = Field(default=None, description="Username")
    password: str | None = Field(default=None, description="Password")


class ForgotPasswordRequest(BaseModel):
    email: str | None = Field(default=None, description="Email address of the account")


class ResetPasswordRequest(BaseModel):
    """Reset code from the email plus the replacement password."""

    model_config = ConfigDict(populate_by_name=True)

    reset_token: str | None = Field(default=None, alias="resetToken")
    new_password: str | None = Field(default=None, alias="newPassword")


class MessageResponse(BaseModel):
    message: str


class SessionClaims(BaseModel):
    """Identity embedded in a session token."""

    id: int
    username: str
    activated_at: datetime | None = None


class MeResponse(BaseModel):
    """Response for GET /me: the claims of the presented token."""

    user: SessionClaims
