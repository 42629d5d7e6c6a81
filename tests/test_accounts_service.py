"""Scenario tests for accounts.services.accounts.AccountService over in-memory storage."""

import asyncio
import unittest
from datetime import UTC, datetime, timedelta

from accounts.core.security import decode_session_token, hash_password, verify_password
from accounts.models import User
from accounts.services.accounts import (
    AccountService,
    ActivationCodeNotFoundError,
    AlreadyActivatedError,
    InvalidCredentialsError,
    InvalidResetCodeError,
    generate_code,
)
from accounts.services.validation import ValidationFailed
from tests.fakes import TEST_JWT_SECRET, InMemoryCollection, RecordingEmailSender, make_settings


def _service(
    users: InMemoryCollection | None = None,
    sender: RecordingEmailSender | None = None,
    **settings_overrides: object,
) -> AccountService:
    return AccountService(
        users=users if users is not None else InMemoryCollection(unique_fields=("username", "email")),
        email_sender=sender or RecordingEmailSender(),
        settings=make_settings(**settings_overrides),
    )


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


class TestGenerateCode(unittest.TestCase):
    def test_url_safe_unpadded(self) -> None:
        for _ in range(50):
            code = generate_code()
            self.assertEqual(len(code), 8)
            self.assertNotIn("=", code)
            self.assertNotIn("+", code)
            self.assertNotIn("/", code)


class TestRegister(unittest.TestCase):
    """Register creates a pending account and emails the activation code."""

    def test_register_creates_pending_user_and_emails_code(self) -> None:
        sender = RecordingEmailSender()
        service = _service(sender=sender)

        async def scenario() -> User:
            user = await service.register("alice", "Secret1!", "alice@x.com")
            await service.drain_notifications()
            return user

        user = asyncio.run(scenario())
        self.assertEqual(user.username, "alice")
        self.assertEqual(user.email, "alice@x.com")
        self.assertIsNotNone(user.activation_code)
        self.assertIsNone(user.activated_at)
        self.assertIsNotNone(user.created_at)
        self.assertNotEqual(user.password_hash, "Secret1!")
        self.assertTrue(verify_password("Secret1!", user.password_hash))
        self.assertEqual(len(sender.sent), 1)
        to, subject, body = sender.sent[0]
        self.assertEqual(to, "alice@x.com")
        self.assertEqual(subject, "Welcome to Accounts!")
        self.assertIn(user.activation_code, body)

    def test_duplicate_username_rejected(self) -> None:
        service = _service()

        async def scenario() -> None:
            await service.register("alice", "Secret1!", "alice@x.com")
            await service.register("alice", "Other1!", "alice2@x.com")

        with self.assertRaises(ValidationFailed) as ctx:
            asyncio.run(scenario())
        self.assertIn("username already exists", ctx.exception.messages)
        self.assertNotIn("email already exists", ctx.exception.messages)

    def test_invalid_input_reports_every_failure(self) -> None:
        service = _service()
        with self.assertRaises(ValidationFailed) as ctx:
            asyncio.run(service.register("a", "", "not-an-email"))
        self.assertEqual(
            ctx.exception.messages,
            [
                "username should be at least 2 characters long",
                "Please enter a valid email address",
                "password is required",
            ],
        )

    def test_email_longer_than_column_rejected(self) -> None:
        users = InMemoryCollection(unique_fields=("username", "email"))
        service = _service(users=users)
        email = "a" * 315 + "@x.com"
        with self.assertRaises(ValidationFailed) as ctx:
            asyncio.run(service.register("alice", "Secret1!", email))
        self.assertEqual(ctx.exception.messages, ["email should be at most 320 characters long"])
        self.assertEqual(users.records, [])

    def test_missing_fields(self) -> None:
        service = _service()
        with self.assertRaises(ValidationFailed) as ctx:
            asyncio.run(service.register(None, None, None))
        self.assertIn("username is required", ctx.exception.messages)
        self.assertIn("email is required", ctx.exception.messages)
        self.assertIn("password is required", ctx.exception.messages)

    def test_email_failure_does_not_fail_registration(self) -> None:
        sender = RecordingEmailSender(error=ConnectionRefusedError("smtp down"))
        users = InMemoryCollection(unique_fields=("username", "email"))
        service = _service(users=users, sender=sender)

        async def scenario() -> None:
            await service.register("alice", "Secret1!", "alice@x.com")
            await service.drain_notifications()

        with self.assertLogs("accounts.services.accounts", level="ERROR"):
            asyncio.run(scenario())
        self.assertEqual(len(users.records), 1)

    def test_duplicate_caught_by_storage_is_validation_failure(self) -> None:
        """A concurrent insert that passed the pre-check is reported, not raised as a crash."""

        class RacingCollection(InMemoryCollection):
            hidden = True

            async def find_one(self, filter):  # type: ignore[override]
                if self.hidden:
                    return None
                return await super().find_one(filter)

            async def create(self, record):  # type: ignore[override]
                try:
                    return await super().create(record)
                finally:
                    self.hidden = False

        users = RacingCollection(
            unique_fields=("username", "email"),
            records=[User(id=1, username="alice", email="other@x.com", password_hash="x")],
        )
        service = _service(users=users)
        with self.assertRaises(ValidationFailed) as ctx:
            asyncio.run(service.register("alice", "Secret1!", "alice@x.com"))
        self.assertEqual(ctx.exception.messages, ["username already exists"])
        self.assertEqual(len(users.records), 1)


class TestActivate(unittest.TestCase):
    def test_activate_then_replay(self) -> None:
        service = _service()

        async def scenario() -> tuple[User, str]:
            user = await service.register("alice", "Secret1!", "alice@x.com")
            code = user.activation_code
            activated = await service.activate_account(code)
            return activated, code

        user, code = asyncio.run(scenario())
        self.assertIsNotNone(user.activated_at)
        self.assertIsNone(user.activation_code)
        with self.assertRaises(ActivationCodeNotFoundError):
            asyncio.run(service.activate_account(code))

    def test_already_activated(self) -> None:
        user = User(
            id=1,
            username="alice",
            email="alice@x.com",
            password_hash="x",
            activation_code="abcdEFGH",
            activated_at=datetime.now(UTC),
        )
        service = _service(users=InMemoryCollection(records=[user]))
        with self.assertRaises(AlreadyActivatedError) as ctx:
            asyncio.run(service.activate_account("abcdEFGH"))
        self.assertEqual(ctx.exception.message, "Account already activated")

    def test_unknown_code(self) -> None:
        service = _service()
        for code in ("nope", "", None):
            with self.subTest(code=code):
                with self.assertRaises(ActivationCodeNotFoundError):
                    asyncio.run(service.activate_account(code))


class TestLogin(unittest.TestCase):
    def setUp(self) -> None:
        self.user = User(
            id=3,
            username="alice",
            email="alice@x.com",
            password_hash=hash_password("Secret1!", rounds=4),
            activation_code="abcdEFGH",
        )
        self.service = _service(users=InMemoryCollection(records=[self.user]), JWT_EXPIRE_MINUTES=30)

    def test_success_issues_token(self) -> None:
        result = asyncio.run(self.service.login("alice", "Secret1!"))
        self.assertEqual(result.max_age, 1800)
        claims = decode_session_token(result.token, TEST_JWT_SECRET)
        self.assertEqual(claims.id, 3)
        self.assertEqual(claims.username, "alice")
        self.assertIsNone(claims.activated_at)
        self.assertEqual(claims, result.claims)

    def test_wrong_password_and_unknown_user_same_message(self) -> None:
        messages = []
        for username, password in (("alice", "wrong"), ("nouser", "x")):
            with self.assertRaises(InvalidCredentialsError) as ctx:
                asyncio.run(self.service.login(username, password))
            messages.append(ctx.exception.message)
        self.assertEqual(messages, ["Invalid username or password"] * 2)

    def test_blank_fields(self) -> None:
        with self.assertRaises(ValidationFailed) as ctx:
            asyncio.run(self.service.login(" ", None))
        self.assertEqual(ctx.exception.messages, ["username is required", "password is required"])


class TestForgotPassword(unittest.TestCase):
    def test_known_email_stores_code_and_emails_it(self) -> None:
        user = User(id=1, username="alice", email="alice@x.com", password_hash="x")
        sender = RecordingEmailSender()
        service = _service(
            users=InMemoryCollection(records=[user]),
            sender=sender,
            RESET_PASSWORD_EXPIRE_MINUTES=60,
        )

        async def scenario() -> None:
            await service.forgot_password("alice@x.com")
            await service.drain_notifications()

        before = _now_ms()
        asyncio.run(scenario())
        self.assertIsNotNone(user.reset_password_code)
        expected = before + 60 * 60 * 1000
        self.assertAlmostEqual(user.reset_password_expires_at, expected, delta=5000)
        self.assertEqual(len(sender.sent), 1)
        self.assertIn(user.reset_password_code, sender.sent[0][2])

    def test_unknown_email_stores_nothing(self) -> None:
        user = User(id=1, username="alice", email="alice@x.com", password_hash="x")
        sender = RecordingEmailSender()
        service = _service(users=InMemoryCollection(records=[user]), sender=sender)

        async def scenario() -> None:
            await service.forgot_password("bob@x.com")
            await service.drain_notifications()

        asyncio.run(scenario())
        self.assertIsNone(user.reset_password_code)
        self.assertIsNone(user.reset_password_expires_at)
        self.assertEqual(sender.sent, [])

    def test_invalid_email(self) -> None:
        service = _service()
        with self.assertRaises(ValidationFailed) as ctx:
            asyncio.run(service.forgot_password(""))
        self.assertEqual(
            ctx.exception.messages,
            ["email is required", "Please enter a valid email address"],
        )


class TestResetPassword(unittest.TestCase):
    def _user(self, expires_at: int | None) -> User:
        return User(
            id=1,
            username="alice",
            email="alice@x.com",
            password_hash=hash_password("Old1!", rounds=4),
            reset_password_code="resetABC",
            reset_password_expires_at=expires_at,
        )

    def test_valid_code_replaces_password(self) -> None:
        user = self._user(_now_ms() + 60_000)
        service = _service(users=InMemoryCollection(records=[user]))
        asyncio.run(service.reset_password("resetABC", "New1!"))
        self.assertTrue(verify_password("New1!", user.password_hash))
        self.assertIsNone(user.reset_password_code)
        self.assertIsNone(user.reset_password_expires_at)

    def test_expired_code(self) -> None:
        user = self._user(_now_ms() - 1)
        service = _service(users=InMemoryCollection(records=[user]))
        with self.assertRaises(InvalidResetCodeError) as ctx:
            asyncio.run(service.reset_password("resetABC", "New1!"))
        self.assertEqual(ctx.exception.message, "Invalid or expired reset token")
        self.assertTrue(verify_password("Old1!", user.password_hash))

    def test_unknown_code(self) -> None:
        service = _service(users=InMemoryCollection(records=[self._user(_now_ms() + 60_000)]))
        for code in ("other", "", None):
            with self.subTest(code=code):
                with self.assertRaises(InvalidResetCodeError):
                    asyncio.run(service.reset_password(code, "New1!"))

    def test_blank_new_password(self) -> None:
        user = self._user(_now_ms() + 60_000)
        service = _service(users=InMemoryCollection(records=[user]))
        with self.assertRaises(ValidationFailed) as ctx:
            asyncio.run(service.reset_password("resetABC", "  "))
        self.assertEqual(ctx.exception.messages, ["password is required"])
        self.assertEqual(user.reset_password_code, "resetABC")

    def test_full_flow_then_login(self) -> None:
        users = InMemoryCollection(unique_fields=("username", "email"))
        service = _service(users=users)

        async def scenario() -> None:
            await service.register("alice", "Secret1!", "alice@x.com")
            await service.forgot_password("alice@x.com")
            code = users.records[0].reset_password_code
            await service.reset_password(code, "Brand-new2")
            await service.drain_notifications()
            await service.login("alice", "Brand-new2")

        asyncio.run(scenario())
        with self.assertRaises(InvalidCredentialsError):
            asyncio.run(service.login("alice", "Secret1!"))


if __name__ == "__main__":
    unittest.main()
