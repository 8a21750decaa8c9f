"""Tests for Riot API data models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from tentrackule.riot.models import (
    QUEUE_TYPES,
    MatchRecord,
    Participant,
    QueueKind,
    RankedStanding,
    Region,
    Title,
    get_queue_type,
)

PLAYER_PUUID = "puuid-player"
OTHER_PUUID = "puuid-other"

# ============================================================================
# Region Tests
# ============================================================================


class TestRegion:
    """Tests for region parsing and routing."""

    def test_parse_case_insensitive(self) -> None:
        """Region names are parsed regardless of case."""
        assert Region.parse("euw") is Region.EUW
        assert Region.parse(" Na ") is Region.NA

    def test_parse_unknown_raises(self) -> None:
        """An unknown region raises ValueError."""
        with pytest.raises(ValueError, match="Unknown region"):
            Region.parse("MARS")

    @pytest.mark.parametrize(
        ("region", "platform", "regional"),
        [
            (Region.EUW, "euw1.api.riotgames.com", "europe.api.riotgames.com"),
            (Region.NA, "na1.api.riotgames.com", "americas.api.riotgames.com"),
            (Region.KR, "kr.api.riotgames.com", "asia.api.riotgames.com"),
            (Region.OCE, "oc1.api.riotgames.com", "sea.api.riotgames.com"),
        ],
    )
    def test_hosts(self, region: Region, platform: str, regional: str) -> None:
        """Each region maps to its platform and regional hosts."""
        assert region.platform_host == platform
        assert region.regional_host == regional

    def test_every_region_is_routed(self) -> None:
        """No region lacks a host."""
        for region in Region:
            assert region.platform_host.endswith(".api.riotgames.com")
            assert region.regional_host.endswith(".api.riotgames.com")


# ============================================================================
# Queue Table Tests
# ============================================================================


class TestQueueTypes:
    """Tests for the queue lookup table."""

    def test_ranked_queues(self) -> None:
        """Ranked queues use the league queueType as category."""
        solo = get_queue_type(Title.LOL, 420)
        assert solo is not None
        assert solo.is_ranked
        assert solo.category == "RANKED_SOLO_5x5"

        tft = get_queue_type(Title.TFT, 1100)
        assert tft is not None
        assert tft.kind is QueueKind.RANKED
        assert tft.category == "RANKED_TFT"

    def test_non_ranked_queues(self) -> None:
        """Normal and ARAM queues are not ranked."""
        for title, queue_id in [(Title.LOL, 400), (Title.LOL, 450), (Title.TFT, 1090)]:
            queue = get_queue_type(title, queue_id)
            assert queue is not None
            assert not queue.is_ranked

    def test_unsupported_queue(self) -> None:
        """Unknown queues and cross-title ids are unsupported."""
        assert get_queue_type(Title.LOL, 1700) is None
        assert get_queue_type(Title.TFT, 420) is None

    def test_table_size(self) -> None:
        """Six queues are supported."""
        assert len(QUEUE_TYPES) == 6


# ============================================================================
# RankedStanding Tests
# ============================================================================


class TestRankedStanding:
    """Tests for league entries."""

    def test_from_dict(self, league_entries: list[dict[str, Any]]) -> None:
        """A league entry is parsed into a standing."""
        standing = RankedStanding.from_dict(league_entries[0])
        assert standing == RankedStanding("RANKED_SOLO_5x5", "GOLD", "II", 42, 30, 25)

    def test_str(self) -> None:
        """The display form lists tier, division and points."""
        assert str(RankedStanding("RANKED_TFT", "PLATINUM", "IV", 7)) == "PLATINUM IV (7 LPs)"

    def test_missing_queue_type_raises(self) -> None:
        """The queue type is mandatory."""
        with pytest.raises(KeyError):
            RankedStanding.from_dict({"tier": "GOLD"})


# ============================================================================
# MatchRecord Tests
# ============================================================================


class TestLolMatch:
    """Tests for match-v5 parsing."""

    def test_from_lol_dict(self, lol_match_payload: dict[str, Any]) -> None:
        """Metadata and participants are parsed."""
        match = MatchRecord.from_lol_dict(lol_match_payload)
        assert match.match_id == "EUW1_1001"
        assert match.title is Title.LOL
        assert match.queue_id == 420
        assert match.created_at.tzinfo is UTC
        assert len(match.participants) == 2
        assert match.queue_type is not None
        assert match.queue_type.category == "RANKED_SOLO_5x5"

    def test_participant(self, lol_match_payload: dict[str, Any]) -> None:
        """A participant is found by PUUID."""
        match = MatchRecord.from_lol_dict(lol_match_payload)
        player = match.participant(PLAYER_PUUID)
        assert player is not None
        assert player.win is True
        assert player.character == "Ahri"
        assert player.role == "MIDDLE"
        assert (player.kills, player.deaths, player.assists) == (7, 2, 11)
        assert match.participant("missing") is None

    def test_creation_from_epoch_ms(self, lol_match_payload: dict[str, Any]) -> None:
        """Creation is converted from epoch milliseconds."""
        lol_match_payload["info"]["gameCreation"] = 1_700_000_000_000
        match = MatchRecord.from_lol_dict(lol_match_payload)
        assert match.created_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)

    def test_formatted_duration(self, lol_match_payload: dict[str, Any]) -> None:
        """Duration is shown as MM:SS."""
        match = MatchRecord.from_lol_dict(lol_match_payload)
        assert match.formatted_duration == "30:34"

    def test_missing_info_raises(self) -> None:
        """A payload without info is rejected."""
        with pytest.raises(KeyError):
            MatchRecord.from_lol_dict({"metadata": {"matchId": "X"}})


class TestTftMatch:
    """Tests for tft-match-v1 parsing."""

    def test_from_tft_dict(self, tft_match_payload: dict[str, Any]) -> None:
        """Metadata, set number and placements are parsed."""
        match = MatchRecord.from_tft_dict(tft_match_payload)
        assert match.match_id == "EUW1_2002"
        assert match.title is Title.TFT
        assert match.queue_id == 1100
        assert match.set_number == 14
        assert match.duration_seconds == 2105

    def test_top_four_wins(self, tft_match_payload: dict[str, Any]) -> None:
        """Placements up to 4th count as a win."""
        match = MatchRecord.from_tft_dict(tft_match_payload)
        player = match.participant(PLAYER_PUUID)
        other = match.participant(OTHER_PUUID)
        assert player is not None and player.win is True
        assert other is not None and other.win is False
        assert player.character == "PetChoncc"
        assert player.gold_left == 12

    def test_missing_creation_raises(self, tft_match_payload: dict[str, Any]) -> None:
        """A payload without creation time is rejected."""
        del tft_match_payload["info"]["game_datetime"]
        with pytest.raises(KeyError):
            MatchRecord.from_tft_dict(tft_match_payload)


class TestParticipant:
    """Tests for participant parsing edge cases."""

    def test_empty_team_position_is_none(self) -> None:
        """ARAM participants have an empty team position."""
        participant = Participant.from_lol_dict(
            {"puuid": "p", "win": False, "teamPosition": ""}
        )
        assert participant.role is None
