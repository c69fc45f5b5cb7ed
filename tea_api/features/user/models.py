"""User domain models."""

from enum import StrEnum
from uuid import UUID, uuid4

from sqlalchemy import UUID as SQLALCHEMY_UUID
from sqlalchemy import BigInteger, Boolean, String, false
from sqlalchemy.orm import Mapped, mapped_column

from tea_api.database.base import Base, TimestampMixin


class UserRole(StrEnum):
    """Authorization tiers carried in the access token.

    ADMIN: Catalog administrator. May create, update and delete catalog
           entries and revoke other users' sessions.

    USER: Any account provisioned through Telegram login.
    """

    ADMIN = "admin"
    USER = "user"


class User(Base, TimestampMixin):
    """User identity record.

    Created on the first successful Telegram login and never deleted by the
    auth subsystem. ``refresh_token_id`` holds the jti of the only refresh
    token that may currently be exchanged; overwriting it rotates the session
    and clearing it revokes the session.
    """

    __tablename__ = "users"

    # Primary key
    id: Mapped[UUID] = mapped_column(SQLALCHEMY_UUID(as_uuid=True), primary_key=True, default=uuid4)

    # Identity (external platform)
    telegram_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Authorization
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    # Session
    refresh_token_id: Mapped[UUID | None] = mapped_column(SQLALCHEMY_UUID(as_uuid=True), nullable=True)

    @property
    def role(self) -> UserRole:
        """Computed property: role derived from the administrator flag."""
        return UserRole.ADMIN if self.is_admin else UserRole.USER

    @property
    def has_active_session(self) -> bool:
        return self.refresh_token_id is not None
