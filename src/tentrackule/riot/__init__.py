"""Riot API layer - match history and ranked standings."""

from tentrackule.riot.client import (
    MATCH_SOURCES,
    LolMatchSource,
    NotFoundError,
    RateLimitedError,
    ResponseDecodeError,
    RiotApiClient,
    RiotApiError,
    RiotMatchSource,
    TftMatchSource,
    TokenBucket,
    TransportError,
)
from tentrackule.riot.metrics import RequestMetrics
from tentrackule.riot.models import (
    QUEUE_TYPES,
    MatchRecord,
    Participant,
    QueueKind,
    QueueType,
    RankedStanding,
    Region,
    Title,
    get_queue_type,
)

__all__ = [
    # Client
    "MATCH_SOURCES",
    "LolMatchSource",
    "NotFoundError",
    "RateLimitedError",
    "RequestMetrics",
    "ResponseDecodeError",
    "RiotApiClient",
    "RiotApiError",
    "RiotMatchSource",
    "TftMatchSource",
    "TokenBucket",
    "TransportError",
    # Models
    "QUEUE_TYPES",
    "MatchRecord",
    "Participant",
    "QueueKind",
    "QueueType",
    "RankedStanding",
    "Region",
    "Title",
    "get_queue_type",
]
