"""SQLAlchemy models for persistent storage.

This module defines the database schema for tracked accounts, their cached
ranked standings, and the subscriber groups (Discord guilds) that follow them.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class AccountModel(Base):
    """SQLAlchemy model for tracked accounts.

    Stores the Riot identity of a player along with the id of the last match
    seen for each title.
    """

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    puuid: Mapped[str | None] = mapped_column(String(78), unique=True, nullable=True)
    puuid_tft: Mapped[str | None] = mapped_column(String(78), nullable=True)
    game_name: Mapped[str] = mapped_column(String(32), nullable=False)
    tag_line: Mapped[str] = mapped_column(String(8), nullable=False)
    region: Mapped[str] = mapped_column(String(8), nullable=False)
    last_match_id: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    last_match_id_tft: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class GuildModel(Base):
    """SQLAlchemy model for subscriber groups.

    A guild may configure a channel where alerts are posted.
    """

    __tablename__ = "guild_settings"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    alert_channel_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


class AccountGuildModel(Base):
    """SQLAlchemy model linking tracked accounts to guilds."""

    __tablename__ = "account_guilds"

    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    guild_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("guild_settings.guild_id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (Index("idx_account_guilds_guild", "guild_id"),)


class LeagueModel(Base):
    """SQLAlchemy model for cached ranked standings.

    One row per account and ranked queue category.
    """

    __tablename__ = "leagues"

    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    queue_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    division: Mapped[str] = mapped_column(String(4), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class QueueAlertSettingModel(Base):
    """SQLAlchemy model for per-guild queue category alert toggles.

    A missing row means alerts for that category are enabled.
    """

    __tablename__ = "queue_alert_settings"

    guild_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("guild_settings.guild_id", ondelete="CASCADE"), primary_key=True
    )
    queue_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
