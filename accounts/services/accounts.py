"""Account lifecycle: registration, activation, login and password reset."""

from __future__ import annotations

import asyncio
import html
import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from accounts.core.security import create_session_token, hash_password, verify_password
from accounts.core.storage import DuplicateKeyError
from accounts.models import User
from accounts.schemas.auth import SessionClaims
from accounts.services.validation import FieldDescriptor, ValidationFailed, ensure_valid, validate

if TYPE_CHECKING:
    from accounts.core.config import Settings
    from accounts.core.mailer import EmailSender
    from accounts.core.storage import Collection

logger = logging.getLogger(__name__)

USERNAME_MIN_LEN = 2
USERNAME_MAX_LEN = 25
# Matches the users.email column width.
EMAIL_MAX_LEN = 320
# Random bytes behind activation and reset codes (8 base64url characters).
CODE_BYTES = 6


class AccountError(Exception):
    """Base class for account lifecycle failures surfaced to the caller."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidCredentialsError(AccountError):
    pass


class InvalidResetCodeError(AccountError):
    pass


class ActivationCodeNotFoundError(AccountError):
    pass


class AlreadyActivatedError(AccountError):
    pass


@dataclass
class LoginResult:
    token: str
    claims: SessionClaims
    max_age: int


def generate_code() -> str:
    """URL-safe random code, unpadded base64url of CODE_BYTES random bytes."""
    return secrets.token_urlsafe(CODE_BYTES)


def _epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class AccountService:
    """
    Orchestrates the account flows over a user collection and an email sender.

    Emails are sent in background tasks: a delivery failure is logged and never
    changes the outcome of the operation that triggered it.
    """

    def __init__(self, users: Collection[User], email_sender: EmailSender, settings: Settings) -> None:
        self.users = users
        self.email_sender = email_sender
        self.settings = settings
        self._notifications: set[asyncio.Task[None]] = set()

    def _now(self) -> datetime:
        return datetime.now(UTC)

    # ------------------------------------------------------------ notifications
    def _notify(self, to: str, subject: str, html_body: str) -> None:
        task = asyncio.create_task(self._deliver(to, subject, html_body))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _deliver(self, to: str, subject: str, html_body: str) -> None:
        try:
            sent = await self.email_sender.send_email(to, subject, html_body)
        except Exception:
            logger.exception("Error sending email", extra={"subject": subject})
            return
        if not sent:
            logger.warning("Email was not delivered", extra={"subject": subject})

    async def drain_notifications(self) -> None:
        """Wait for in-flight emails to finish."""
        if self._notifications:
            await asyncio.gather(*list(self._notifications))

    def _activation_email(self, username: str, code: str) -> tuple[str, str]:
        app_name = html.escape(self.settings.APP_NAME)
        subject = f"Welcome to {self.settings.APP_NAME}!"
        body = f"""
            <p>Hi {html.escape(username)},</p>
            <p>Thank you for registering to {app_name}! Please use the following activation code to activate your account:</p>
            <p><strong>{code}</strong></p>
            <p>Visit our website and enter the activation code in the provided field to complete the registration process.</p>
        """
        return subject, body

    def _reset_email(self, username: str, code: str) -> tuple[str, str]:
        app_name = html.escape(self.settings.APP_NAME)
        minutes = self.settings.RESET_PASSWORD_EXPIRE_MINUTES
        subject = f"Password Reset - {self.settings.APP_NAME}"
        body = f"""
            <p>Hi {html.escape(username)},</p>
            <p>We received a request to reset your {app_name} account password. If you didn't make this request, you can ignore this email.</p>
            <p>Use the following code to reset your password:</p>
            <p><strong>{code}</strong></p>
            <p>This code will expire in {minutes} minutes.</p>
        """
        return subject, body

    # ------------------------------------------------------------ registration
    def _registration_fields(self, username: str | None, password: str | None, email: str | None) -> list[FieldDescriptor]:
        return [
            FieldDescriptor(
                field_name="username",
                value=username,
                min_length=USERNAME_MIN_LEN,
                max_length=USERNAME_MAX_LEN,
                required=True,
                unique_in=self.users,
            ),
            FieldDescriptor(
                field_name="email",
                value=email,
                max_length=EMAIL_MAX_LEN,
                required=True,
                is_email=True,
                unique_in=self.users,
            ),
            FieldDescriptor(field_name="password", value=password, required=True),
        ]

    async def register(self, username: str | None, password: str | None, email: str | None) -> User:
        """
        Create a pending account and email its activation code.

        Raises ValidationFailed with every failing rule message. A duplicate that
        slips past the uniqueness pre-check is rejected by the unique index and
        reported the same way.
        """
        await ensure_valid(self._registration_fields(username, password, email))
        password_hash = await asyncio.to_thread(hash_password, password, self.settings.BCRYPT_ROUNDS)
        activation_code = generate_code()
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            activation_code=activation_code,
            created_at=self._now(),
        )
        try:
            user = await self.users.create(user)
        except DuplicateKeyError as e:
            errors = await validate(
                f for f in self._registration_fields(username, password, email) if f.unique_in is not None
            )
            raise ValidationFailed(errors or ["username or email already exists"]) from e
        logger.info("User registered", extra={"user_id": user.id})
        self._notify(email, *self._activation_email(username, activation_code))
        return user

    async def activate_account(self, activation_code: str | None) -> User:
        """Consume an activation code: set activated_at and clear the code."""
        user = None
        if activation_code:
            user = await self.users.find_one({"activation_code": activation_code})
        if user is None:
            raise ActivationCodeNotFoundError("Activation code not found")
        if user.is_activated:
            raise AlreadyActivatedError("Account already activated")
        user.activated_at = self._now()
        user.activation_code = None
        await self.users.save(user)
        logger.info("Account activated", extra={"user_id": user.id})
        return user

    # ------------------------------------------------------------ login
    async def login(self, username: str | None, password: str | None) -> LoginResult:
        """
        Check credentials and issue a session token.

        Unknown username and wrong password fail with the same message.
        """
        await ensure_valid(
            [
                FieldDescriptor(field_name="username", value=username, required=True),
                FieldDescriptor(field_name="password", value=password, required=True),
            ]
        )
        user = await self.users.find_one({"username": username})
        stored_hash = user.password_hash if user is not None else None
        if not await asyncio.to_thread(verify_password, password, stored_hash):
            logger.info("Login failed")
            raise InvalidCredentialsError("Invalid username or password")

        claims = SessionClaims(id=user.id, username=user.username, activated_at=user.activated_at)
        ttl = timedelta(minutes=self.settings.JWT_EXPIRE_MINUTES)
        token = create_session_token(
            claims,
            self.settings.JWT_SECRET.get_secret_value(),
            ttl,
            algorithm=self.settings.JWT_ALGORITHM,
        )
        logger.info("Login succeeded", extra={"user_id": user.id})
        return LoginResult(token=token, claims=claims, max_age=int(ttl.total_seconds()))

    # ------------------------------------------------------------ password reset
    async def forgot_password(self, email: str | None) -> None:
        """
        Store a reset code for the account with this email and send it by email.

        Returns normally whether or not an account exists, so callers cannot
        tell registered emails apart.
        """
        await ensure_valid([FieldDescriptor(field_name="email", value=email, required=True, is_email=True)])
        user = await self.users.find_one({"email": email})
        if user is None:
            logger.info("Password reset requested for unknown email")
            return
        code = generate_code()
        expires_at = self._now() + timedelta(minutes=self.settings.RESET_PASSWORD_EXPIRE_MINUTES)
        user.reset_password_code = code
        user.reset_password_expires_at = _epoch_millis(expires_at)
        await self.users.save(user)
        logger.info("Password reset requested", extra={"user_id": user.id})
        self._notify(user.email, *self._reset_email(user.username, code))

    async def reset_password(self, reset_code: str | None, new_password: str | None) -> None:
        """Replace the password of the account holding an unexpired reset code."""
        user = None
        if reset_code:
            user = await self.users.find_one(
                {
                    "reset_password_code": reset_code,
                    "reset_password_expires_at": {"$gt": _epoch_millis(self._now())},
                }
            )
        if user is None:
            raise InvalidResetCodeError("Invalid or expired reset token")
        await ensure_valid([FieldDescriptor(field_name="password", value=new_password, required=True)])
        user.password_hash = await asyncio.to_thread(hash_password, new_password, self.settings.BCRYPT_ROUNDS)
        user.reset_password_code = None
        user.reset_password_expires_at = None
        await self.users.save(user)
        logger.info("Password reset completed", extra={"user_id": user.id})
