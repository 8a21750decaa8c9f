"""Repository implementation for tracked accounts and subscriber groups.

``SqlAccountStore`` is the single data access object used by the result
poller and the alert dispatcher. Every method opens its own short session so
concurrent account tasks never share a transaction.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from tentrackule.riot.models import RankedStanding, Region, Title
from tentrackule.storage.models import (
    AccountGuildModel,
    AccountModel,
    GuildModel,
    LeagueModel,
    QueueAlertSettingModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a storage operation fails."""


@dataclass
class TrackedAccountDTO:
    """Data transfer object for tracked accounts."""

    game_name: str
    tag_line: str
    region: Region
    puuid: str | None = None
    puuid_tft: str | None = None
    last_match_id: str = ""
    last_match_id_tft: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_model(cls, model: AccountModel) -> TrackedAccountDTO:
        """Create DTO from SQLAlchemy model."""
        return cls(
            id=model.id,
            game_name=model.game_name,
            tag_line=model.tag_line,
            region=Region.parse(model.region),
            puuid=model.puuid,
            puuid_tft=model.puuid_tft,
            last_match_id=model.last_match_id,
            last_match_id_tft=model.last_match_id_tft,
        )

    @property
    def riot_id(self) -> str:
        """Display name as ``name#tag``."""
        return f"{self.game_name}#{self.tag_line}"

    def handle_for(self, title: Title) -> str | None:
        """Remote account handle (PUUID) for a title."""
        return self.puuid if title is Title.LOL else self.puuid_tft

    def last_match_id_for(self, title: Title) -> str:
        """Last seen match id for a title, empty if none yet."""
        return self.last_match_id if title is Title.LOL else self.last_match_id_tft


def _last_match_column(title: Title) -> str:
    return "last_match_id" if title is Title.LOL else "last_match_id_tft"


def _insert_for(session: AsyncSession) -> Any:
    """Pick the dialect-specific INSERT construct supporting upserts."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


class SqlAccountStore:
    """Account store backed by SQLAlchemy async sessions.

    Provides the reads and writes the polling pipeline needs, plus the
    tracking operations used to manage which guild follows which account.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the store.

        Args:
            session_factory: Factory producing async sessions.
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Open a session inside a transaction, mapping DB errors to StoreError."""
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    # ------------------------------------------------------------------
    # Polling pipeline
    # ------------------------------------------------------------------

    async def list_tracked_accounts(self) -> list[TrackedAccountDTO]:
        """Get every tracked account."""
        async with self._session() as session:
            result = await session.execute(select(AccountModel).order_by(AccountModel.created_at))
            return [TrackedAccountDTO.from_model(m) for m in result.scalars().all()]

    async def get_last_match_id(self, account_id: str, title: Title) -> str | None:
        """Get the last seen match id of an account for a title.

        Returns:
            The match id, or None if the account is unknown or never matched.
        """
        column = getattr(AccountModel, _last_match_column(title))
        async with self._session() as session:
            result = await session.execute(select(column).where(AccountModel.id == account_id))
            value = result.scalar_one_or_none()
        return value or None

    async def set_last_match_id(self, account_id: str, title: Title, match_id: str) -> None:
        """Record the last seen match id of an account for a title."""
        async with self._session() as session:
            await session.execute(
                update(AccountModel)
                .where(AccountModel.id == account_id)
                .values({_last_match_column(title): match_id})
            )

    async def get_cached_standing(self, account_id: str, category: str) -> RankedStanding | None:
        """Get the cached ranked standing of an account for a queue category."""
        async with self._session() as session:
            model = await session.get(LeagueModel, (account_id, category))
            if model is None:
                return None
            return RankedStanding(
                queue_type=model.queue_type,
                tier=model.tier,
                division=model.division,
                points=model.points,
                wins=model.wins,
                losses=model.losses,
            )

    async def set_cached_standing(self, account_id: str, standing: RankedStanding) -> None:
        """Insert or replace the cached standing for the standing's category."""
        values = {
            "account_id": account_id,
            "queue_type": standing.queue_type,
            "tier": standing.tier,
            "division": standing.division,
            "points": standing.points,
            "wins": standing.wins,
            "losses": standing.losses,
        }
        async with self._session() as session:
            stmt = _insert_for(session)(LeagueModel).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["account_id", "queue_type"],
                set_={
                    "tier": stmt.excluded.tier,
                    "division": stmt.excluded.division,
                    "points": stmt.excluded.points,
                    "wins": stmt.excluded.wins,
                    "losses": stmt.excluded.losses,
                    "updated_at": func.now(),
                },
            )
            await session.execute(stmt)

    async def get_groups_for_account(self, account_id: str) -> dict[int, int | None]:
        """Get the guilds tracking an account with their alert channel, if any."""
        async with self._session() as session:
            result = await session.execute(
                select(GuildModel.guild_id, GuildModel.alert_channel_id)
                .join(AccountGuildModel, AccountGuildModel.guild_id == GuildModel.guild_id)
                .where(AccountGuildModel.account_id == account_id)
            )
            return {guild_id: channel_id for guild_id, channel_id in result.all()}

    async def is_category_enabled(self, group_id: int, category: str) -> bool:
        """Check whether a guild wants alerts for a queue category.

        Categories without an explicit setting are enabled.
        """
        async with self._session() as session:
            result = await session.execute(
                select(QueueAlertSettingModel.enabled).where(
                    QueueAlertSettingModel.guild_id == group_id,
                    QueueAlertSettingModel.queue_type == category,
                )
            )
            enabled = result.scalar_one_or_none()
        return True if enabled is None else bool(enabled)

    # ------------------------------------------------------------------
    # Tracking management
    # ------------------------------------------------------------------

    async def track_account(self, account: TrackedAccountDTO, group_id: int) -> TrackedAccountDTO:
        """Start tracking an account for a guild.

        An account already stored with the same LoL PUUID is reused.

        Returns:
            The stored account.
        """
        async with self._session() as session:
            if await session.get(GuildModel, group_id) is None:
                session.add(GuildModel(guild_id=group_id))

            model: AccountModel | None = None
            if account.puuid:
                result = await session.execute(
                    select(AccountModel).where(AccountModel.puuid == account.puuid)
                )
                model = result.scalar_one_or_none()
            if model is None:
                model = await session.get(AccountModel, account.id)
            if model is None:
                model = AccountModel(
                    id=account.id,
                    puuid=account.puuid,
                    puuid_tft=account.puuid_tft,
                    game_name=account.game_name,
                    tag_line=account.tag_line,
                    region=account.region.value,
                    last_match_id=account.last_match_id,
                    last_match_id_tft=account.last_match_id_tft,
                )
                session.add(model)
                logger.info("Tracking new account %s", account.riot_id)

            await session.flush()
            if await session.get(AccountGuildModel, (model.id, group_id)) is None:
                session.add(AccountGuildModel(account_id=model.id, guild_id=group_id))
            await session.flush()
            return TrackedAccountDTO.from_model(model)

    async def untrack_account(self, account_id: str, group_id: int) -> bool:
        """Stop tracking an account for a guild.

        The account and its cached standings are deleted once no guild
        references it anymore.

        Returns:
            True if the guild was tracking the account.
        """
        async with self._session() as session:
            result = await session.execute(
                delete(AccountGuildModel).where(
                    AccountGuildModel.account_id == account_id,
                    AccountGuildModel.guild_id == group_id,
                )
            )
            if result.rowcount == 0:
                return False

            remaining = await session.execute(
                select(func.count())
                .select_from(AccountGuildModel)
                .where(AccountGuildModel.account_id == account_id)
            )
            if remaining.scalar_one() == 0:
                await session.execute(
                    delete(LeagueModel).where(LeagueModel.account_id == account_id)
                )
                await session.execute(delete(AccountModel).where(AccountModel.id == account_id))
                logger.info("Deleted account %s, no guild tracks it anymore", account_id)
            return True

    async def get_accounts_for_group(self, group_id: int) -> list[TrackedAccountDTO]:
        """Get the accounts tracked by a guild."""
        async with self._session() as session:
            result = await session.execute(
                select(AccountModel)
                .join(AccountGuildModel, AccountGuildModel.account_id == AccountModel.id)
                .where(AccountGuildModel.guild_id == group_id)
                .order_by(AccountModel.game_name)
            )
            return [TrackedAccountDTO.from_model(m) for m in result.scalars().all()]

    async def set_alert_channel(self, group_id: int, channel_id: int | None) -> None:
        """Set (or clear) the alert channel of a guild."""
        async with self._session() as session:
            stmt = _insert_for(session)(GuildModel).values(
                guild_id=group_id, alert_channel_id=channel_id
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["guild_id"],
                set_={"alert_channel_id": stmt.excluded.alert_channel_id},
            )
            await session.execute(stmt)

    async def get_alert_channel(self, group_id: int) -> int | None:
        """Get the alert channel of a guild, if configured."""
        async with self._session() as session:
            model = await session.get(GuildModel, group_id)
            return model.alert_channel_id if model else None

    async def set_category_enabled(self, group_id: int, category: str, enabled: bool) -> None:
        """Enable or disable alerts of a queue category for a guild."""
        async with self._session() as session:
            if await session.get(GuildModel, group_id) is None:
                session.add(GuildModel(guild_id=group_id))
                await session.flush()
            stmt = _insert_for(session)(QueueAlertSettingModel).values(
                guild_id=group_id, queue_type=category, enabled=enabled
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["guild_id", "queue_type"],
                set_={"enabled": stmt.excluded.enabled},
            )
            await session.execute(stmt)
