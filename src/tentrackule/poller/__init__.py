"""Polling layer - match detection and LP reconciliation."""

from tentrackule.poller.reconciler import league_points_delta
from tentrackule.poller.result_poller import (
    AccountOutcome,
    MatchSource,
    PollerError,
    PollerState,
    PollStats,
    ResultPoller,
)

__all__ = [
    "AccountOutcome",
    "MatchSource",
    "PollStats",
    "PollerError",
    "PollerState",
    "ResultPoller",
    "league_points_delta",
]
