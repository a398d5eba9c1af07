from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Base & naming ----------
class Base(DeclarativeBase):
    # Keep index/constraint names stable for cleaner migrations
    metadata = sa.MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


class AccountStatus(str, enum.Enum):
    PENDING = "pending"      # registered, email not yet confirmed
    VERIFIED = "verified"    # may log in


# ---------- ACCOUNTS ----------
class Account(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    dob: Mapped[date] = mapped_column(sa.Date, nullable=False)
    # always stored lower-cased; see repos.accounts.normalize_email
    email: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)

    status: Mapped[str] = mapped_column(
        sa.Text,
        nullable=False,
        default=AccountStatus.PENDING.value,
        server_default=sa.text("'pending'"),
    )  # 'pending' | 'verified'

    # pending one-time code (registration or login)
    otp_code: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint("status in ('pending','verified')", name="users_status"),
    )

    @property
    def is_verified(self) -> bool:
        return self.status == AccountStatus.VERIFIED.value

    def set_otp(self, code: str, expires_at: datetime) -> None:
        self.otp_code = code
        self.otp_expires_at = expires_at

    def clear_otp(self) -> None:
        self.otp_code = None
        self.otp_expires_at = None


# ---------- NOTES ----------
class Note(Base):
    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    # owner is referenced by email only, no foreign key
    user_email: Mapped[str] = mapped_column(sa.Text, nullable=False)
    content: Mapped[str] = mapped_column(sa.Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("ix_notes_user_email_created_at", "user_email", "created_at"),
    )
