"""Data models for the Riot API layer.

Regions, titles, the queue lookup table and the typed representations of
match and league payloads returned by the Riot API.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# Riot's league points range inside a single division
POINTS_PER_DIVISION = 100

# TFT placements up to this value count as a win (top 4)
TFT_WIN_PLACEMENT = 4


class Title(str, Enum):
    """Riot game title an account can be polled for."""

    LOL = "lol"
    TFT = "tft"


class Region(str, Enum):
    """Riot platform region of an account."""

    NA = "NA"
    EUW = "EUW"
    EUNE = "EUNE"
    OCE = "OCE"
    RU = "RU"
    TR = "TR"
    BR = "BR"
    LAN = "LAN"
    LAS = "LAS"
    JP = "JP"
    KR = "KR"
    TW = "TW"

    @classmethod
    def parse(cls, value: str) -> Region:
        """Parse a region name case-insensitively.

        Raises:
            ValueError: If the region is unknown.
        """
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown region: {value}") from None

    @property
    def platform_host(self) -> str:
        """Platform routing host (summoner/league endpoints)."""
        return f"{_PLATFORM_IDS[self]}.api.riotgames.com"

    @property
    def regional_host(self) -> str:
        """Regional routing host (match endpoints)."""
        return f"{_REGIONAL_ROUTES[self]}.api.riotgames.com"


_PLATFORM_IDS: dict[Region, str] = {
    Region.NA: "na1",
    Region.EUW: "euw1",
    Region.EUNE: "eun1",
    Region.OCE: "oc1",
    Region.RU: "ru",
    Region.TR: "tr1",
    Region.BR: "br1",
    Region.LAN: "la1",
    Region.LAS: "la2",
    Region.JP: "jp1",
    Region.KR: "kr",
    Region.TW: "tw2",
}

_REGIONAL_ROUTES: dict[Region, str] = {
    Region.NA: "americas",
    Region.BR: "americas",
    Region.LAN: "americas",
    Region.LAS: "americas",
    Region.EUW: "europe",
    Region.EUNE: "europe",
    Region.TR: "europe",
    Region.RU: "europe",
    Region.KR: "asia",
    Region.JP: "asia",
    Region.OCE: "sea",
    Region.TW: "sea",
}


class QueueKind(str, Enum):
    """Whether a queue carries ranked standing to reconcile."""

    NON_RANKED = "non_ranked"
    RANKED = "ranked"


@dataclass(frozen=True)
class QueueType:
    """A supported queue of a title.

    Attributes:
        title: Title the queue belongs to.
        queue_id: Raw Riot queue identifier.
        category: Stable category key. For ranked queues this is the
            league ``queueType`` string returned by the league endpoints.
        label: Human readable queue name.
        kind: Ranked or non-ranked.
    """

    title: Title
    queue_id: int
    category: str
    label: str
    kind: QueueKind

    @property
    def is_ranked(self) -> bool:
        """Return True if the queue has a ranked standing."""
        return self.kind is QueueKind.RANKED


QUEUE_TYPES: dict[tuple[Title, int], QueueType] = {
    (q.title, q.queue_id): q
    for q in (
        QueueType(Title.LOL, 400, "NORMAL_DRAFT", "Normal Draft", QueueKind.NON_RANKED),
        QueueType(Title.LOL, 420, "RANKED_SOLO_5x5", "Solo/Duo Queue", QueueKind.RANKED),
        QueueType(Title.LOL, 440, "RANKED_FLEX_SR", "Flex Queue", QueueKind.RANKED),
        QueueType(Title.LOL, 450, "ARAM", "ARAM", QueueKind.NON_RANKED),
        QueueType(Title.TFT, 1090, "NORMAL_TFT", "Normal Game", QueueKind.NON_RANKED),
        QueueType(Title.TFT, 1100, "RANKED_TFT", "Ranked Game", QueueKind.RANKED),
    )
}


def get_queue_type(title: Title, queue_id: int) -> QueueType | None:
    """Look up a supported queue, or None if the queue is not handled."""
    return QUEUE_TYPES.get((title, queue_id))


def _epoch_ms_to_datetime(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=UTC)


@dataclass(frozen=True)
class RankedStanding:
    """Ranked standing of an account in one queue category."""

    queue_type: str
    tier: str
    division: str
    points: int
    wins: int = 0
    losses: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RankedStanding:
        """Create a standing from a Riot league entry."""
        return cls(
            queue_type=str(data["queueType"]),
            tier=str(data.get("tier", "")),
            division=str(data.get("rank", "")),
            points=int(data.get("leaguePoints", 0)),
            wins=int(data.get("wins", 0)),
            losses=int(data.get("losses", 0)),
        )

    def __str__(self) -> str:
        return f"{self.tier} {self.division} ({self.points} LPs)"


@dataclass(frozen=True)
class Participant:
    """A player's line in a finished match."""

    puuid: str
    game_name: str
    tag_line: str
    win: bool
    kills: int = 0
    deaths: int = 0
    assists: int = 0
    character: str = ""
    role: str | None = None
    placement: int | None = None
    profile_icon: int | None = None
    gold_left: int | None = None
    last_round: int | None = None
    damage_to_players: int | None = None

    @classmethod
    def from_lol_dict(cls, data: dict[str, Any]) -> Participant:
        """Create a participant from a match-v5 participant entry."""
        return cls(
            puuid=str(data["puuid"]),
            game_name=str(data.get("riotIdGameName", "")),
            tag_line=str(data.get("riotIdTagline", "")),
            win=bool(data["win"]),
            kills=int(data.get("kills", 0)),
            deaths=int(data.get("deaths", 0)),
            assists=int(data.get("assists", 0)),
            character=str(data.get("championName", "")),
            role=data.get("teamPosition") or None,
            profile_icon=data.get("profileIcon"),
        )

    @classmethod
    def from_tft_dict(cls, data: dict[str, Any]) -> Participant:
        """Create a participant from a tft-match-v1 participant entry."""
        placement = int(data["placement"])
        companion = data.get("companion") or {}
        return cls(
            puuid=str(data["puuid"]),
            game_name=str(data.get("riotIdGameName", "")),
            tag_line=str(data.get("riotIdTagline", "")),
            win=placement <= TFT_WIN_PLACEMENT,
            character=str(companion.get("species", "")),
            placement=placement,
            gold_left=data.get("gold_left"),
            last_round=data.get("last_round"),
            damage_to_players=data.get("total_damage_to_players"),
        )


@dataclass(frozen=True)
class MatchRecord:
    """A finished match fetched from the Riot API."""

    match_id: str
    title: Title
    queue_id: int
    created_at: datetime
    duration_seconds: int
    participants: tuple[Participant, ...]
    set_number: int | None = None

    @classmethod
    def from_lol_dict(cls, data: dict[str, Any]) -> MatchRecord:
        """Create a match from a match-v5 response."""
        info = data["info"]
        return cls(
            match_id=str(data["metadata"]["matchId"]),
            title=Title.LOL,
            queue_id=int(info["queueId"]),
            created_at=_epoch_ms_to_datetime(info["gameCreation"]),
            duration_seconds=int(info.get("gameDuration", 0)),
            participants=tuple(Participant.from_lol_dict(p) for p in info["participants"]),
        )

    @classmethod
    def from_tft_dict(cls, data: dict[str, Any]) -> MatchRecord:
        """Create a match from a tft-match-v1 response."""
        info = data["info"]
        created = info.get("gameCreation", info.get("game_datetime"))
        if created is None:
            raise KeyError("gameCreation")
        return cls(
            match_id=str(data["metadata"]["match_id"]),
            title=Title.TFT,
            queue_id=int(info["queue_id"]),
            created_at=_epoch_ms_to_datetime(created),
            duration_seconds=int(float(info.get("game_length", 0))),
            participants=tuple(Participant.from_tft_dict(p) for p in info["participants"]),
            set_number=info.get("tft_set_number"),
        )

    @property
    def queue_type(self) -> QueueType | None:
        """Supported queue of this match, or None if unhandled."""
        return get_queue_type(self.title, self.queue_id)

    def participant(self, puuid: str) -> Participant | None:
        """Find the participant with the given PUUID."""
        for participant in self.participants:
            if participant.puuid == puuid:
                return participant
        return None

    @property
    def formatted_duration(self) -> str:
        """Match duration as MM:SS."""
        minutes, seconds = divmod(self.duration_seconds, 60)
        return f"{minutes:02}:{seconds:02}"
