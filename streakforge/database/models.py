"""
streakforge.database.models — SQLAlchemy 2.0 Data Models
=========================================================

Tables:
- users              — Challenge participants (registration date anchors weeks)
- daily_uploads      — Photo evidence, one per (user, calendar date)
- rest_days          — Quota-limited rest claims, one per (challenge, date)
- streaks            — Persisted streak state + admin baseline + rollup watermark
- weekly_challenges  — One row per user-week window
- trophy_transactions — Append-only trophy audit ledger with structured reasons
- settings           — Gameplay tuning key-value store

All calendar dates are ``YYYY-MM-DD`` strings in the configured timezone;
all trophy and streak values are integers.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all streakforge ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UploadStatus(enum.StrEnum):
    """Moderation state of a daily upload."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ChallengeStatus(enum.StrEnum):
    """Weekly challenge lifecycle: active → pending_evaluation → completed | failed."""
    ACTIVE = "active"
    PENDING_EVALUATION = "pending_evaluation"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ChallengeStatus.COMPLETED, ChallengeStatus.FAILED)


class LedgerReason(enum.StrEnum):
    """Kind of a trophy ledger entry.

    The kind plus the entry's ``upload_id`` / ``challenge_id`` /
    ``reason_date`` columns form the structured reason.  Control decisions
    always read these columns, never the rendered audit text.
    """
    UPLOAD_APPROVED = "upload_approved"
    UPLOAD_REJECTED = "upload_rejected"
    UPLOAD_PENDING = "upload_pending"
    MISSED_DAY = "missed_day"
    WEEKLY_BONUS = "weekly_bonus"
    WEEKLY_BONUS_REVOKED = "weekly_bonus_revoked"
    ADMIN_SET = "admin_set"


UPLOAD_SYNC_REASONS: dict[UploadStatus, LedgerReason] = {
    UploadStatus.APPROVED: LedgerReason.UPLOAD_APPROVED,
    UploadStatus.REJECTED: LedgerReason.UPLOAD_REJECTED,
    UploadStatus.PENDING: LedgerReason.UPLOAD_PENDING,
}

WEEKLY_BONUS_REASONS: tuple[LedgerReason, ...] = (
    LedgerReason.WEEKLY_BONUS,
    LedgerReason.WEEKLY_BONUS_REVOKED,
)


# ---------------------------------------------------------------------------
# Users — one row per participant
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    registration_date: Mapped[str] = mapped_column(String(10), nullable=False)
    trophies: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    streak: Mapped[StreakState | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    challenges: Mapped[list[WeeklyChallenge]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} trophies={self.trophies}>"


# ---------------------------------------------------------------------------
# WeeklyChallenge — one 7-day window per user, anchored to registration
# ---------------------------------------------------------------------------
class WeeklyChallenge(Base):
    __tablename__ = "weekly_challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    start_date: Mapped[str] = mapped_column(String(10), nullable=False)
    end_date: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ChallengeStatus.ACTIVE.value
    )
    completed_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rest_days_available: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="challenges")

    __table_args__ = (
        UniqueConstraint("user_id", "start_date", name="uq_weekly_challenges_user_start"),
        Index("ix_weekly_challenges_user_status", "user_id", "status"),
    )

    @property
    def challenge_status(self) -> ChallengeStatus:
        return ChallengeStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<WeeklyChallenge id={self.id} user={self.user_id} "
            f"{self.start_date}..{self.end_date} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# Upload — daily photo evidence
# ---------------------------------------------------------------------------
class Upload(Base):
    __tablename__ = "daily_uploads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("weekly_challenges.id", ondelete="CASCADE"), nullable=True
    )
    upload_date: Mapped[str] = mapped_column(String(10), nullable=False)
    photo_path: Mapped[str | None] = mapped_column(String(500), default=None)
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UploadStatus.PENDING.value
    )
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    verified_by: Mapped[int | None] = mapped_column(Integer, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "upload_date", name="uq_daily_uploads_user_date"),
        Index("ix_daily_uploads_status", "verification_status"),
        Index("ix_daily_uploads_challenge", "challenge_id"),
    )

    @property
    def status(self) -> UploadStatus:
        return UploadStatus(self.verification_status)

    def __repr__(self) -> str:
        return (
            f"<Upload id={self.id} user={self.user_id} "
            f"date={self.upload_date} status={self.verification_status}>"
        )


# ---------------------------------------------------------------------------
# RestDay — counts as valid activity without photo evidence
# ---------------------------------------------------------------------------
class RestDay(Base):
    __tablename__ = "rest_days"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("weekly_challenges.id", ondelete="CASCADE"), nullable=False
    )
    rest_date: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("challenge_id", "rest_date", name="uq_rest_days_challenge_date"),
        UniqueConstraint("user_id", "rest_date", name="uq_rest_days_user_date"),
    )

    def __repr__(self) -> str:
        return f"<RestDay user={self.user_id} date={self.rest_date}>"


# ---------------------------------------------------------------------------
# StreakState — persisted streak snapshot, one row per user
# ---------------------------------------------------------------------------
class StreakState(Base):
    """Persisted result of the last explicit recompute.

    ``admin_baseline_*`` is a floor set by an administrator; it persists
    until cleared.  ``last_rollup_date`` is the daily rollup watermark.
    """
    __tablename__ = "streaks"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_activity_date: Mapped[str | None] = mapped_column(String(10), default=None)
    last_rollup_date: Mapped[str | None] = mapped_column(String(10), default=None)
    admin_baseline_date: Mapped[str | None] = mapped_column(String(10), default=None)
    admin_baseline_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    admin_baseline_longest: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    user: Mapped[User] = relationship(back_populates="streak")

    def __repr__(self) -> str:
        return (
            f"<StreakState user={self.user_id} current={self.current_streak} "
            f"longest={self.longest_streak}>"
        )


# ---------------------------------------------------------------------------
# TrophyTransaction — append-only audit ledger
# ---------------------------------------------------------------------------
class TrophyTransaction(Base):
    __tablename__ = "trophy_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    upload_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("daily_uploads.id", ondelete="SET NULL"), nullable=True
    )
    challenge_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("weekly_challenges.id", ondelete="SET NULL"), nullable=True
    )
    reason_kind: Mapped[str] = mapped_column(String(30), nullable=False)
    reason_date: Mapped[str | None] = mapped_column(String(10), default=None)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_trophy_tx_user", "user_id"),
        Index("ix_trophy_tx_upload", "upload_id"),
        Index("ix_trophy_tx_challenge_kind", "challenge_id", "reason_kind"),
        Index("ix_trophy_tx_user_kind_date", "user_id", "reason_kind", "reason_date"),
    )

    @property
    def reason(self) -> LedgerReason:
        return LedgerReason(self.reason_kind)

    def __repr__(self) -> str:
        return (
            f"<TrophyTransaction id={self.id} user={self.user_id} "
            f"delta={self.delta} kind={self.reason_kind}>"
        )


# ---------------------------------------------------------------------------
# Setting — gameplay tuning key-value store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Rest-day quotas, the retention window, and the nightly sweep watermark
    live here so they can change without a redeploy.  Values are stored as
    JSON strings; typed accessors live in
    :mod:`streakforge.services.settings_service`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"
