"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tentrackule.riot.models import MatchRecord, QueueType, RankedStanding


@dataclass(frozen=True)
class MatchContext:
    """A detected match with its optional ranked enrichment.

    Attributes:
        match: The finished match.
        queue_type: Supported queue the match was played in.
        standing: Freshly fetched standing for ranked queues.
        lp_delta: LP gained or lost, None when unknown.
    """

    match: MatchRecord
    queue_type: QueueType
    standing: RankedStanding | None = None
    lp_delta: int | None = None


@dataclass(frozen=True)
class Notification:
    """A rendered alert ready for delivery.

    Attributes:
        title: Short alert title/headline.
        description: Main alert body text.
        color: Embed color as an RGB integer.
        url: Link opened when clicking the title.
        thumbnail_url: Small image shown next to the body.
        author: Header line naming the title and queue.
        author_icon_url: Icon shown next to the author line.
        fields: Ordered ``(name, value, inline)`` fields.
        footer: Footer text.
    """

    title: str
    description: str
    color: int
    url: str | None = None
    thumbnail_url: str | None = None
    author: str | None = None
    author_icon_url: str | None = None
    fields: tuple[tuple[str, str, bool], ...] = field(default_factory=tuple)
    footer: str | None = None

    def to_discord_embed(self) -> dict[str, object]:
        """Build the Discord embed payload."""
        embed: dict[str, object] = {
            "title": self.title,
            "description": self.description,
            "color": self.color,
            "fields": [
                {"name": name, "value": value, "inline": inline}
                for name, value, inline in self.fields
            ],
        }
        if self.url:
            embed["url"] = self.url
        if self.thumbnail_url:
            embed["thumbnail"] = {"url": self.thumbnail_url}
        if self.author:
            author: dict[str, str] = {"name": self.author}
            if self.author_icon_url:
                author["icon_url"] = self.author_icon_url
            embed["author"] = author
        if self.footer:
            embed["footer"] = {"text": self.footer}
        return embed
