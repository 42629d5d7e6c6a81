"""Account endpoints and the bearer-token dependency (get_current_user)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accounts.core.config import Settings, get_settings
from accounts.core.security import ExpiredTokenError, TokenError, decode_session_token
from accounts.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SessionClaims,
)
from accounts.services.accounts import (
    AccountService,
    ActivationCodeNotFoundError,
    AlreadyActivatedError,
    InvalidCredentialsError,
    InvalidResetCodeError,
)
from accounts.services.validation import ValidationFailed

router = APIRouter()
security = HTTPBearer(auto_error=False)

# Validation failures are reported as 401 for compatibility with existing clients.
VALIDATION_FAILED_STATUS = status.HTTP_401_UNAUTHORIZED


def get_account_service(request: Request) -> AccountService:
    """Dependency: the process-wide AccountService built at startup."""
    return request.app.state.account_service


def _validation_error(e: ValidationFailed) -> HTTPException:
    return HTTPException(status_code=VALIDATION_FAILED_STATUS, detail=e.messages)


def _set_session_cookie(response: Response, token: str, max_age: int, settings: Settings) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=settings.APP_ENV == "prod",
        samesite="strict",
    )


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    service: Annotated[AccountService, Depends(get_account_service)],
) -> MessageResponse:
    """Create a pending account; the activation code is sent by email."""
    try:
        await service.register(body.username, body.password, body.email)
    except ValidationFailed as e:
        raise _validation_error(e) from e
    return MessageResponse(message="User registered successfully")


@router.post("/login", response_model=MessageResponse)
async def login(
    body: LoginRequest,
    response: Response,
    service: Annotated[AccountService, Depends(get_account_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    """
    Authenticate with username and password.

    The session token is returned in an HTTP-only cookie whose max-age matches
    the token expiry.
    """
    try:
        result = await service.login(body.username, body.password)
    except ValidationFailed as e:
        raise _validation_error(e) from e
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    _set_session_cookie(response, result.token, result.max_age, settings)
    return MessageResponse(message="Authentication successful!")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    service: Annotated[AccountService, Depends(get_account_service)],
) -> MessageResponse:
    """Email a reset code if the account exists. The response is the same either way."""
    try:
        await service.forgot_password(body.email)
    except ValidationFailed as e:
        raise _validation_error(e) from e
    return MessageResponse(
        message="Password reset instructions sent to your email if an account exists."
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    service: Annotated[AccountService, Depends(get_account_service)],
) -> MessageResponse:
    try:
        await service.reset_password(body.reset_token, body.new_password)
    except InvalidResetCodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except ValidationFailed as e:
        raise _validation_error(e) from e
    return MessageResponse(message="Password reset successfully")


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    """Clear the session cookie. The token itself stays valid until it expires."""
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.APP_ENV == "prod",
        samesite="strict",
    )
    return MessageResponse(message="Logout successful")


@router.post("/activate/{activation_code}", response_model=MessageResponse)
async def activate_account(
    activation_code: str,
    service: Annotated[AccountService, Depends(get_account_service)],
) -> MessageResponse:
    try:
        await service.activate_account(activation_code)
    except ActivationCodeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except AlreadyActivatedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    return MessageResponse(message="Account activated successfully")


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SessionClaims:
    """Dependency: require a valid Bearer session token and return its claims. Raises 401 otherwise."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_session_token(
            credentials.credentials,
            settings.JWT_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
        )
    except ExpiredTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except TokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


@router.get("/me", response_model=MeResponse)
def me(current_user: Annotated[SessionClaims, Depends(get_current_user)]) -> MeResponse:
    """Return the claims of the presented session token."""
    return MeResponse(user=current_user)
