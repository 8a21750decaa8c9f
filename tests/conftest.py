"""Shared fixtures: Riot API payloads as returned by match-v5 and tft-match-v1."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

PLAYER_PUUID = "puuid-player"
OTHER_PUUID = "puuid-other"


def epoch_ms(value: datetime) -> int:
    """Convert a datetime to Riot epoch milliseconds."""
    return int(value.timestamp() * 1000)


@pytest.fixture
def future_creation() -> datetime:
    """A creation time safely after any poller start in the test."""
    return datetime.now(UTC) + timedelta(hours=1)


@pytest.fixture
def lol_match_payload(future_creation: datetime) -> dict[str, Any]:
    """A ranked solo/duo match-v5 payload won by the tracked player."""
    return {
        "metadata": {"matchId": "EUW1_1001", "participants": [PLAYER_PUUID, OTHER_PUUID]},
        "info": {
            "queueId": 420,
            "gameCreation": epoch_ms(future_creation),
            "gameDuration": 1834,
            "participants": [
                {
                    "puuid": PLAYER_PUUID,
                    "riotIdGameName": "Faker",
                    "riotIdTagline": "KR1",
                    "win": True,
                    "kills": 7,
                    "deaths": 2,
                    "assists": 11,
                    "championName": "Ahri",
                    "teamPosition": "MIDDLE",
                    "profileIcon": 4568,
                },
                {
                    "puuid": OTHER_PUUID,
                    "riotIdGameName": "Other",
                    "riotIdTagline": "EUW",
                    "win": False,
                    "kills": 1,
                    "deaths": 6,
                    "assists": 3,
                    "championName": "Zed",
                    "teamPosition": "MIDDLE",
                    "profileIcon": 1,
                },
            ],
        },
    }


@pytest.fixture
def tft_match_payload(future_creation: datetime) -> dict[str, Any]:
    """A ranked tft-match-v1 payload where the tracked player placed 3rd."""
    return {
        "metadata": {"match_id": "EUW1_2002", "participants": [PLAYER_PUUID, OTHER_PUUID]},
        "info": {
            "queue_id": 1100,
            "game_datetime": epoch_ms(future_creation),
            "game_length": 2105.37,
            "tft_set_number": 14,
            "participants": [
                {
                    "puuid": PLAYER_PUUID,
                    "riotIdGameName": "Faker",
                    "riotIdTagline": "KR1",
                    "placement": 3,
                    "gold_left": 12,
                    "last_round": 33,
                    "total_damage_to_players": 98,
                    "companion": {"species": "PetChoncc"},
                },
                {
                    "puuid": OTHER_PUUID,
                    "riotIdGameName": "Other",
                    "riotIdTagline": "EUW",
                    "placement": 6,
                    "companion": {"species": "PetSilverwing"},
                },
            ],
        },
    }


@pytest.fixture
def league_entries() -> list[dict[str, Any]]:
    """league-v4 entries for the tracked player."""
    return [
        {
            "queueType": "RANKED_SOLO_5x5",
            "tier": "GOLD",
            "rank": "II",
            "leaguePoints": 42,
            "wins": 30,
            "losses": 25,
        },
        {
            "queueType": "RANKED_FLEX_SR",
            "tier": "SILVER",
            "rank": "I",
            "leaguePoints": 80,
            "wins": 5,
            "losses": 4,
        },
    ]
