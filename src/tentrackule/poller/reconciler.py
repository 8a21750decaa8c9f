"""League points reconciliation between two ranked standings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tentrackule.riot.models import POINTS_PER_DIVISION

if TYPE_CHECKING:
    from tentrackule.riot.models import RankedStanding


def league_points_delta(
    cached: RankedStanding | None,
    fresh: RankedStanding,
    won: bool,
) -> int | None:
    """Compute the LP gained or lost by one match.

    The raw difference between the fresh and cached points has the wrong
    sign when the match moved the player across a division boundary (a win
    from 90 LP lands on 20 LP of the next division). In that case a flat
    division range is added back on a win, or removed on a loss.

    The correction is a single division whatever the actual number of
    divisions or tiers crossed, so it is only exact for one-division moves.

    Args:
        cached: Standing stored before the match, if any.
        fresh: Standing fetched after the match.
        won: Whether the tracked player won the match.

    Returns:
        Signed LP change, or None when there is no cached standing for the
        same queue category.
    """
    if cached is None or cached.queue_type != fresh.queue_type:
        return None

    diff = fresh.points - cached.points
    if (diff < 0 and won) or (diff > 0 and not won):
        diff += POINTS_PER_DIVISION if won else -POINTS_PER_DIVISION
    return diff
