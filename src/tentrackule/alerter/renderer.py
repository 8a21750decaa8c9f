"""Alert renderer turning detected matches into notifications.

This module transforms a MatchContext into a Notification describing the
tracked player's result, with LP changes for ranked queues.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from tentrackule.alerter.models import Notification
from tentrackule.riot.models import Title

if TYPE_CHECKING:
    from tentrackule.alerter.models import MatchContext
    from tentrackule.riot.models import MatchRecord, Participant
    from tentrackule.storage.repos import TrackedAccountDTO

DEFAULT_DDRAGON_VERSION = "15.12.1"

# Asset and profile URLs
DDRAGON_CDN_URL = "https://ddragon.leagueoflegends.com/cdn/{version}/img"
DPM_PROFILE_URL = "https://dpm.lol/{name}-{tag}"
TRACKERGG_TFT_MATCH_URL = "https://tracker.gg/tft/match/{match_id}"
TFT_THUMBNAIL_URL = (
    "https://ddragon.leagueoflegends.com/cdn/13.24.1/img/tft-tactician/"
    "Tooltip_Nimblefoot_Base_Variant4_Tier1.png"
)

# Embed colors
COLOR_WIN = 0x2762DA  # Blue
COLOR_LOSS = 0xE23670  # Pink

ROLE_NAMES = {
    "TOP": "Top",
    "JUNGLE": "Jungle",
    "MIDDLE": "Mid",
    "BOTTOM": "AD Carry",
    "UTILITY": "Support",
}

# Queue categories whose alerts include the player's role
ROLE_CATEGORIES = frozenset({"RANKED_SOLO_5x5", "RANKED_FLEX_SR", "NORMAL_DRAFT"})

GAME_KIND = {
    "RANKED_SOLO_5x5": "a ranked game",
    "RANKED_FLEX_SR": "a ranked game",
    "NORMAL_DRAFT": "a normal game",
    "ARAM": "an ARAM game",
}

PLACEMENT_MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


class AlertCreationError(Exception):
    """Base exception for matches that cannot be turned into an alert."""


class PlayerNotInMatchError(AlertCreationError):
    """The tracked account is not a participant of the match."""


class UnsupportedQueueError(AlertCreationError):
    """The match's queue cannot be rendered."""


def format_lp_delta(delta: int) -> str:
    """Format an LP change with an explicit sign, e.g. ``+18 LPs``."""
    return f"{delta:+d} LPs"


def normalize_role(team_position: str | None) -> str:
    """Map a Riot team position to a display role."""
    return ROLE_NAMES.get(team_position or "", "")


def placement_string(placement: int) -> str:
    """Ordinal placement, e.g. ``1st`` or ``5th``."""
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(placement, "th")
    return f"{placement}{suffix}"


def result_color(win: bool) -> int:
    """Embed color of a win or a loss."""
    return COLOR_WIN if win else COLOR_LOSS


class AlertRenderer:
    """Renders match contexts into notifications for a tracked account."""

    def __init__(self, ddragon_version: str = DEFAULT_DDRAGON_VERSION) -> None:
        """Initialize the renderer.

        Args:
            ddragon_version: Data Dragon asset version used for images.
        """
        self.ddragon_version = ddragon_version

    def render(self, account: TrackedAccountDTO, context: MatchContext) -> Notification:
        """Render the notification of a match for an account.

        Raises:
            PlayerNotInMatchError: If the account did not play the match.
            UnsupportedQueueError: If the queue does not belong to the match's title.
        """
        match = context.match
        if context.queue_type.title is not match.title:
            raise UnsupportedQueueError(
                f"Queue {context.queue_type.category} cannot be rendered for a "
                f"{match.title.value} match"
            )

        handle = account.handle_for(match.title)
        participant = match.participant(handle) if handle else None
        if participant is None:
            raise PlayerNotInMatchError(
                f"{account.riot_id} ({handle}) is not part of match {match.match_id}"
            )

        if match.title is Title.TFT:
            return self._render_tft(participant, context)
        return self._render_lol(participant, context)

    def _title_suffix(self, context: MatchContext) -> str:
        if context.lp_delta is None:
            return ""
        return f" ({format_lp_delta(context.lp_delta)})"

    def _rank_field(self, context: MatchContext) -> tuple[str, str, bool] | None:
        if context.standing is None:
            return None
        return ("Rank", str(context.standing), False)

    def _champion_url(self, champion: str) -> str:
        # Data Dragon file name differs from the match payload for this one
        if champion == "FiddleSticks":
            champion = "Fiddlesticks"
        base = DDRAGON_CDN_URL.format(version=self.ddragon_version)
        return f"{base}/champion/{champion}.png"

    def _profile_icon_url(self, participant: Participant) -> str | None:
        if participant.profile_icon is None:
            return None
        base = DDRAGON_CDN_URL.format(version=self.ddragon_version)
        return f"{base}/profileicon/{participant.profile_icon}.png"

    def _render_lol(self, participant: Participant, context: MatchContext) -> Notification:
        match = context.match
        queue = context.queue_type
        outcome = "won" if participant.win else "lost"
        game_kind = GAME_KIND.get(queue.category, "a game")

        fields: list[tuple[str, str, bool]] = [
            ("K/D/A", f"{participant.kills}/{participant.deaths}/{participant.assists}", True),
        ]
        role = normalize_role(participant.role)
        if queue.category in ROLE_CATEGORIES and role:
            fields.append(("Role", role, True))
        fields.append(("Champion", participant.character, True))
        rank = self._rank_field(context)
        if rank:
            fields.append(rank)

        return Notification(
            title=("Victory" if participant.win else "Defeat") + self._title_suffix(context),
            description=f"**{participant.game_name}** just {outcome} {game_kind} !",
            color=result_color(participant.win),
            url=DPM_PROFILE_URL.format(
                name=quote(participant.game_name), tag=quote(participant.tag_line)
            ),
            thumbnail_url=self._champion_url(participant.character),
            author=f"[LoL] {queue.label}",
            author_icon_url=self._profile_icon_url(participant),
            fields=tuple(fields),
            footer=f"Duration: {match.formatted_duration}",
        )

    def _render_tft(self, participant: Participant, context: MatchContext) -> Notification:
        match = context.match
        placement = participant.placement or 0
        place = f"{placement_string(placement)} place"
        medal = PLACEMENT_MEDALS.get(placement)
        title = f"{place} {medal}" if medal else place

        fields: list[tuple[str, str, bool]] = []
        rank = self._rank_field(context)
        if rank:
            fields.append(rank)
        if participant.gold_left is not None:
            fields.append(("Gold Left", str(participant.gold_left), True))
        if participant.last_round is not None:
            fields.append(("Rounds Survived", str(participant.last_round), True))
        if participant.damage_to_players is not None:
            fields.append(("Damage Dealt", str(participant.damage_to_players), True))

        return Notification(
            title=title + self._title_suffix(context),
            description=f"**{participant.game_name}** just finished at the __{place}__ !",
            color=result_color(participant.win),
            url=TRACKERGG_TFT_MATCH_URL.format(match_id=match.match_id),
            thumbnail_url=TFT_THUMBNAIL_URL,
            author=f"[TFT] {context.queue_type.label}",
            fields=tuple(fields),
            footer=_tft_footer(match),
        )


def _tft_footer(match: MatchRecord) -> str:
    if match.set_number is not None:
        return f"Set {match.set_number}"
    return f"Duration: {match.formatted_duration}"
