"""
Shared embed builders for the club bot.

Keeps formatting of events, teams, rankings and finance views consistent
across cogs and views.
"""

from typing import List, Optional

import discord

from patota.constants import UIConstants
from patota.data_models.events import EventDetails
from patota.data_models.finance import DuesGenerationResult, MonthlyReport, Pendencies
from patota.data_models.ranking import MemberStats, RankingTable
from patota.data_models.teams import DrawnTeams, MatchOutcome, ScoreResult
from patota.database.models import CashDirection, CashEntry, Event, Payment
from patota.utils.money import format_money
from patota.utils.time_parser import format_local

EMBED_FIELD_LIMIT = 1024


def _clip(text: str, limit: int = EMBED_FIELD_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def _names(lines) -> str:
    return _clip("\n".join(f"{i}. {line.name}" for i, line in enumerate(lines, start=1)) or "-")


def build_event_embed(details: EventDetails) -> discord.Embed:
    event = details.event
    embed = discord.Embed(
        title=f"{UIConstants.BALL_EMOJI} {event.display_title}",
        description=(
            f"📅 {format_local(event.starts_at)}\n"
            f"📍 {event.location}\n"
            f"🏷️ {event.event_type.name.title()}"
        ),
        color=UIConstants.DEFAULT_EMBED_COLOR
    )
    if event.rsvp_deadline:
        embed.add_field(name="Confirm until", value=format_local(event.rsvp_deadline), inline=True)
    embed.add_field(
        name="Confirmations",
        value="Open ✅" if details.confirmations_open else "Closed 🔒",
        inline=True
    )
    embed.add_field(name=f"Going ({len(details.going)})", value=_names(details.going), inline=False)
    if details.maybe:
        embed.add_field(name=f"Maybe ({len(details.maybe)})", value=_names(details.maybe), inline=True)
    if details.not_going:
        embed.add_field(name=f"Not going ({len(details.not_going)})", value=_names(details.not_going), inline=True)
    if event.score_finalized:
        embed.add_field(
            name="Final score",
            value=f"{UIConstants.BLACK_TEAM_EMOJI} {event.score_black} x {event.score_white} {UIConstants.WHITE_TEAM_EMOJI}",
            inline=False
        )
    elif event.team_a_score is not None:
        embed.add_field(
            name="Score",
            value=f"{event.team_a_name} {event.team_a_score} x {event.team_b_score} {event.team_b_name}",
            inline=False
        )
    embed.set_footer(text=f"Event #{event.id}")
    return embed


def build_events_list_embed(events: List[Event], title: str = "Upcoming events") -> discord.Embed:
    embed = discord.Embed(title=f"📅 {title}", color=UIConstants.DEFAULT_EMBED_COLOR)
    if not events:
        embed.description = "No events scheduled."
        return embed
    embed.description = _clip("\n".join(
        f"**#{event.id}** {format_local(event.starts_at)} - {event.display_title} @ {event.location}"
        + (" 🔀" if event.drawn else "")
        for event in events
    ), 4096)
    return embed


def build_teams_embed(event: Event, teams: DrawnTeams) -> discord.Embed:
    embed = discord.Embed(
        title=f"🔀 Teams - {event.display_title}",
        description=f"📅 {format_local(event.starts_at)}\n📍 {event.location}",
        color=UIConstants.DEFAULT_EMBED_COLOR
    )
    embed.add_field(name=f"{UIConstants.BLACK_TEAM_EMOJI} Black ({len(teams.black)})", value=_names(teams.black), inline=True)
    embed.add_field(name=f"{UIConstants.WHITE_TEAM_EMOJI} White ({len(teams.white)})", value=_names(teams.white), inline=True)
    embed.set_footer(text=f"Event #{event.id} • {teams.total_players} players")
    return embed


def build_score_embed(result: ScoreResult, edited: bool = False) -> discord.Embed:
    winner = {
        MatchOutcome.BLACK: f"{UIConstants.BLACK_TEAM_EMOJI} Black wins!",
        MatchOutcome.WHITE: f"{UIConstants.WHITE_TEAM_EMOJI} White wins!",
        MatchOutcome.DRAW: "🤝 Draw!",
    }[result.winner]
    return discord.Embed(
        title="✏️ Score updated" if edited else "🏁 Final score",
        description=(
            f"{UIConstants.BLACK_TEAM_EMOJI} **{result.score_black}** x **{result.score_white}** {UIConstants.WHITE_TEAM_EMOJI}\n"
            f"{winner}\n\n{result.credited_players} players credited"
        ),
        color=UIConstants.SUCCESS_COLOR
    )


def build_ranking_embed(table: RankingTable, limit: Optional[int] = None) -> discord.Embed:
    title = f"{UIConstants.TROPHY_EMOJI} Ranking" + (f" {table.period}" if table.period else " (all time)")
    embed = discord.Embed(
        title=title,
        color=UIConstants.GOLD_RANK_COLOR if not table.is_empty else UIConstants.DEFAULT_EMBED_COLOR
    )
    if table.is_empty:
        embed.description = "No points recorded yet."
        return embed
    medals = {1: "🥇", 2: "🥈", 3: "🥉"}
    rows = table.entries[:limit] if limit else table.entries
    embed.description = _clip("\n".join(
        f"{medals.get(entry.position, f'`{entry.position:>2}`')} **{entry.name}** - {entry.points} pts • {entry.goals} goals"
        for entry in rows
    ), 4096)
    return embed


def build_stats_embed(stats: MemberStats) -> discord.Embed:
    embed = discord.Embed(
        title=f"📊 {stats.name}",
        color=UIConstants.GOLD_RANK_COLOR if stats.position == 1 else UIConstants.DEFAULT_EMBED_COLOR
    )
    embed.add_field(
        name="Ranking",
        value=(
            f"**Position:** {f'#{stats.position}' if stats.position else '-'}\n"
            f"**Points:** {stats.points}\n"
            f"**Goals:** {stats.goals}"
        ),
        inline=True
    )
    embed.add_field(
        name="Games",
        value=(
            f"**Played:** {stats.games}\n"
            f"**W/D/L:** {stats.wins}/{stats.draws}/{stats.losses}\n"
            f"**Win rate:** {stats.win_rate:.1f}%\n"
            f"**Goals/game:** {stats.goals_per_game:.2f}"
        ),
        inline=True
    )
    embed.add_field(
        name="Attendance",
        value=(
            f"**Present:** {stats.present} | **Late:** {stats.late}\n"
            f"**Absent:** {stats.absent} | **Excused:** {stats.excused}\n"
            f"**Rate:** {stats.attendance_rate:.1f}%"
        ),
        inline=False
    )
    return embed


def build_pendencies_embed(member_name: str, pendencies: Pendencies, pix_key: str = '') -> discord.Embed:
    if pendencies.is_clear:
        return discord.Embed(
            title=f"{UIConstants.MONEY_EMOJI} {member_name}",
            description="You're all paid up! ✅",
            color=UIConstants.SUCCESS_COLOR
        )
    embed = discord.Embed(
        title=f"{UIConstants.MONEY_EMOJI} Pendencies - {member_name}",
        color=UIConstants.WARNING_COLOR
    )
    if pendencies.dues:
        embed.add_field(name="Dues", value=_clip("\n".join(
            f"`due {item.target.due_id}` {item.description}: {format_money(item.amount)}" for item in pendencies.dues
        )), inline=False)
    if pendencies.fines:
        embed.add_field(name="Fines", value=_clip("\n".join(
            f"`fine {item.target.fine_id}` {item.description}: {format_money(item.amount)}" for item in pendencies.fines
        )), inline=False)
    embed.add_field(name="Total", value=f"**{format_money(pendencies.total)}**", inline=False)
    if pix_key:
        embed.set_footer(text=f"PIX: {pix_key} • send the proof with /pay")
    return embed


def build_balance_embed(balance: int, entries: List[CashEntry]) -> discord.Embed:
    embed = discord.Embed(
        title=f"{UIConstants.MONEY_EMOJI} Club cash",
        description=f"Balance: **{format_money(balance)}**",
        color=UIConstants.SUCCESS_COLOR if balance >= 0 else UIConstants.ERROR_COLOR
    )
    if entries:
        embed.add_field(name="Latest entries", value=_clip("\n".join(
            f"{'🟢' if entry.direction == CashDirection.IN else '🔴'} {format_local(entry.created_at, '%d/%m')} "
            f"{entry.category.name.title()} {format_money(entry.amount)}" + (f" - {entry.note}" if entry.note else "")
            for entry in entries
        )), inline=False)
    return embed


def build_pending_payments_embed(payments: List[Payment]) -> discord.Embed:
    embed = discord.Embed(title="🧾 Payments awaiting confirmation", color=UIConstants.WARNING_COLOR)
    if not payments:
        embed.description = "Nothing to confirm."
        return embed
    embed.description = _clip("\n".join(
        f"**#{payment.id}** {payment.member.name} - {format_money(payment.amount)} "
        f"({'due' if payment.due_id else 'fine'} {payment.due_id or payment.fine_id})"
        + (f" [proof]({payment.proof_url})" if payment.proof_url else "")
        for payment in payments
    ), 4096)
    return embed


def build_dues_result_embed(result: DuesGenerationResult) -> discord.Embed:
    return discord.Embed(
        title=f"🗓️ Dues {result.period}",
        description=f"Created: **{result.created}**\nAlready billed: **{result.skipped}**",
        color=UIConstants.SUCCESS_COLOR
    )


def build_report_embed(report: MonthlyReport) -> discord.Embed:
    embed = discord.Embed(title=f"📈 Monthly report {report.period}", color=UIConstants.DEFAULT_EMBED_COLOR)
    embed.add_field(
        name="Dues",
        value=(
            f"{report.dues.count} billed • {report.dues.paid} paid • {report.dues.pending} pending • {report.dues.exempt} exempt\n"
            f"Received {format_money(report.dues.amount_paid)} of {format_money(report.dues.amount_total)}"
        ),
        inline=False
    )
    embed.add_field(
        name="Cash",
        value=(
            f"In: {format_money(report.cash.total_in)}\n"
            f"Out: {format_money(report.cash.total_out)}\n"
            f"Net: **{format_money(report.cash.net)}**"
        ),
        inline=True
    )
    by_kind = "\n".join(f"{kind.title()}: {count}" for kind, count in sorted(report.fines.by_kind.items()))
    embed.add_field(
        name=f"Fines ({report.fines.count})",
        value=f"Total {format_money(report.fines.amount)}" + (f"\n{by_kind}" if by_kind else ""),
        inline=True
    )
    embed.add_field(
        name="Events",
        value=f"{report.events.total} total • {report.events.games} games • {report.events.internal} internal",
        inline=False
    )
    if report.balance is not None:
        embed.set_footer(text=f"Current balance: {format_money(report.balance)}")
    return embed
