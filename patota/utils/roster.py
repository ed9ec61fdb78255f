"""
Plain-text team roster for sharing outside Discord (e.g. a messaging group).
"""

from typing import List, Optional

from patota.data_models.teams import DrawnTeams
from patota.database.models import Event
from patota.utils.time_parser import to_local


def _numbered(players) -> List[str]:
    return [f"{index}. {ref.name}" for index, ref in enumerate(players, start=1)]


def format_team_roster(event: Event, teams: DrawnTeams, tz_name: Optional[str] = None) -> str:
    """
    Header with date, time and location, then each squad numbered, then the
    total player count.
    """
    local = to_local(event.starts_at, tz_name)
    lines = [
        f"⚽ TEAMS - {event.display_title.upper()}",
        f"📅 {local:%A, %d %B}",
        f"⏰ {local:%H:%M}",
        f"📍 {event.location}",
        "",
        f"⚫ TEAM BLACK ({len(teams.black)})",
        *_numbered(teams.black),
        "",
        f"⚪ TEAM WHITE ({len(teams.white)})",
        *_numbered(teams.white),
        "",
        f"Total: {teams.total_players} players",
    ]
    return "\n".join(lines)
