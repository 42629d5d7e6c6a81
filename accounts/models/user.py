"""ORM model for user accounts."""

from sqlalchemy import BigInteger, Column, DateTime, Integer, String, func

from accounts.models.base import Base


class User(Base):
    """
    User account with its lifecycle and moderation fields.

    A registered account is pending while activation_code is set and becomes
    activated once activated_at is set (the code is cleared at that point).
    reset_password_expires_at is epoch milliseconds.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(25), nullable=False, unique=True, index=True)
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    activation_code = Column(String(16), nullable=True, index=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    reset_password_code = Column(String(16), nullable=True, index=True)
    reset_password_expires_at = Column(BigInteger, nullable=True)
    ban_expires_at = Column(DateTime(timezone=True), nullable=True)
    ban_reason = Column(String(255), nullable=True)

    @property
    def is_activated(self) -> bool:
        return self.activated_at is not None
