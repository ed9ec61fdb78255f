import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional

from patota.config import Config
from patota.constants import ConfigKeys
from patota.database.models import AttendanceStatus, CASH_OUT_CATEGORIES, DueStatus, EventType
from patota.utils.embeds import (
    build_dues_result_embed, build_pending_payments_embed, build_report_embed,
    build_score_embed, build_teams_embed
)
from patota.utils.exceptions import ValidationError
from patota.utils.logger import setup_logger
from patota.utils.money import format_money, parse_money
from patota.utils.roster import format_team_roster
from patota.utils.time_parser import format_local, parse_event_datetime, parse_month

logger = setup_logger(__name__)


def _enum_choices(enum_cls, members=None):
    return [
        app_commands.Choice(name=member.name.replace('_', ' ').title(), value=member.name)
        for member in (members or enum_cls)
    ]


def _parse_when(text: Optional[str], label: str):
    if not text:
        return None
    try:
        return parse_event_datetime(text)
    except ValueError as e:
        raise ValidationError(f"{label}: {e}") from e


def _parse_amount(text: Optional[str]):
    if text is None:
        return None
    try:
        return parse_money(text)
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _parse_period(text: str):
    try:
        return parse_month(text)
    except ValueError as e:
        raise ValidationError(str(e)) from e


class AdminCog(commands.Cog):
    """Admin commands. The role is enforced by the operations themselves."""

    def __init__(self, bot):
        self.bot = bot
        self.logger = logger

    async def _actor(self, interaction: discord.Interaction):
        return await self.bot.member_ops.resolve_actor(interaction.user.id)

    # ============================================================================
    # Members
    # ============================================================================

    @app_commands.command(name="admin-add-member", description="Register a member by name and email")
    @app_commands.describe(name="Member name", email="Member email", user="Discord account to link (optional)")
    async def add_member(self, interaction: discord.Interaction, name: str, email: str,
                         user: Optional[discord.User] = None):
        actor = await self._actor(interaction)
        member = await self.bot.member_ops.add_member(actor, name, email, discord_id=user.id if user else None)
        await interaction.response.send_message(f"✅ Member #{member.id} **{member.name}** added.")

    @app_commands.command(name="admin-members", description="List members with their numbers")
    async def list_members(self, interaction: discord.Interaction, active_only: bool = False):
        actor = await self._actor(interaction)
        self.bot.member_ops.require_admin(actor, "list members")
        members = await self.bot.member_ops.list_members(active_only=active_only)
        lines = [
            f"`#{m.id}` {m.name}" + (" 👑" if m.is_admin else "") + ("" if m.is_active else " (inactive)")
            for m in members
        ]
        embed = discord.Embed(
            title=f"👥 Members ({len(members)})",
            description="\n".join(lines)[:4096] or "No members yet.",
            color=discord.Color.blue()
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="admin-member-active", description="Activate or deactivate a member")
    async def member_active(self, interaction: discord.Interaction, member_id: int, active: bool):
        actor = await self._actor(interaction)
        member = await self.bot.member_ops.set_member_active(actor, member_id, active)
        await interaction.response.send_message(
            f"✅ **{member.name}** is now {'active' if member.is_active else 'inactive'}."
        )

    @app_commands.command(name="admin-member-admin", description="Grant or revoke the admin role")
    async def member_admin(self, interaction: discord.Interaction, member_id: int, is_admin: bool):
        actor = await self._actor(interaction)
        member = await self.bot.member_ops.set_member_admin(actor, member_id, is_admin)
        await interaction.response.send_message(
            f"✅ **{member.name}** {'is now an admin' if member.is_admin else 'is no longer an admin'}."
        )

    # ============================================================================
    # Events and attendance
    # ============================================================================

    @app_commands.command(name="admin-create-event", description="Schedule an event")
    @app_commands.describe(
        event_type="Game or internal event",
        starts_at="Local date/time, e.g. 2026-10-24 19:30 or 24/10/2026 19:30",
        location="Where it happens",
        rsvp_deadline="Confirmations close at this local date/time (optional)",
        title="Optional title"
    )
    @app_commands.choices(event_type=_enum_choices(EventType))
    async def create_event(self, interaction: discord.Interaction, event_type: app_commands.Choice[str],
                           starts_at: str, location: str, rsvp_deadline: Optional[str] = None,
                           title: Optional[str] = None):
        actor = await self._actor(interaction)
        event = await self.bot.event_ops.create_event(
            actor, event_type.value, _parse_when(starts_at, "Start"), location,
            rsvp_deadline=_parse_when(rsvp_deadline, "RSVP deadline"), title=title
        )
        await interaction.response.send_message(
            f"📅 Event #{event.id} created: {event.display_title} on {format_local(event.starts_at)} @ {event.location}"
        )

    @app_commands.command(name="admin-edit-event", description="Change an event's schedule or details")
    async def edit_event(self, interaction: discord.Interaction, event_id: int,
                         starts_at: Optional[str] = None, location: Optional[str] = None,
                         rsvp_deadline: Optional[str] = None, title: Optional[str] = None):
        actor = await self._actor(interaction)
        fields = {}
        if starts_at:
            fields['starts_at'] = _parse_when(starts_at, "Start")
        if location:
            fields['location'] = location
        if rsvp_deadline:
            fields['rsvp_deadline'] = _parse_when(rsvp_deadline, "RSVP deadline")
        if title:
            fields['title'] = title
        if not fields:
            raise ValidationError("Nothing to change: give at least one field")
        event = await self.bot.event_ops.update_event(actor, event_id, **fields)
        await interaction.response.send_message(f"✅ Event #{event.id} updated.")

    @app_commands.command(name="admin-delete-event", description="Delete an event with its RSVPs and points")
    async def delete_event(self, interaction: discord.Interaction, event_id: int):
        actor = await self._actor(interaction)
        await self.bot.event_ops.delete_event(actor, event_id)
        await interaction.response.send_message(f"🗑️ Event #{event_id} deleted.")

    @app_commands.command(name="admin-attendance", description="Record a member's attendance at an event")
    @app_commands.choices(status=_enum_choices(AttendanceStatus))
    async def attendance(self, interaction: discord.Interaction, event_id: int, member_id: int,
                         status: app_commands.Choice[str]):
        actor = await self._actor(interaction)
        outcome = await self.bot.event_ops.record_attendance(actor, event_id, member_id, status.value)
        notes = []
        if outcome.fine:
            notes.append(f"fine {format_money(outcome.fine.amount)} ({outcome.fine.kind.name})")
        if outcome.points_awarded:
            notes.append("+1 point")
        if outcome.points_removed:
            notes.append("attendance point removed")
        if not outcome.changed:
            notes.append("unchanged")
        await interaction.response.send_message(
            f"📝 Member #{member_id} marked **{status.name}** at event #{event_id}"
            + (f" ({', '.join(notes)})" if notes else "") + "."
        )

    @app_commands.command(name="admin-close-list", description="Show active members who did not answer the RSVP")
    async def close_list(self, interaction: discord.Interaction, event_id: int):
        actor = await self._actor(interaction)
        missing = await self.bot.event_ops.close_event_list(actor, event_id)
        if not missing:
            await interaction.response.send_message(f"✅ Everyone answered for event #{event_id}.")
            return
        names = "\n".join(f"• {m.name}" for m in missing)
        await interaction.response.send_message(f"⏳ No answer yet for event #{event_id}:\n{names}"[:2000])

    @app_commands.command(name="admin-named-score", description="Score of an event played without a draw")
    async def named_score(self, interaction: discord.Interaction, event_id: int,
                          team_a: str, score_a: app_commands.Range[int, 0, 99],
                          team_b: str, score_b: app_commands.Range[int, 0, 99]):
        actor = await self._actor(interaction)
        event = await self.bot.event_ops.update_named_score(actor, event_id, team_a, team_b, score_a, score_b)
        await interaction.response.send_message(
            f"🏁 {event.team_a_name} {event.team_a_score} x {event.team_b_score} {event.team_b_name}"
        )

    # ============================================================================
    # Teams and scores
    # ============================================================================

    @app_commands.command(name="admin-draw-teams", description="Randomly draw Black and White teams")
    async def draw_teams(self, interaction: discord.Interaction, event_id: int):
        actor = await self._actor(interaction)
        teams = await self.bot.team_ops.generate_teams(actor, event_id)
        event = await self.bot.event_ops.get_event(event_id)
        await interaction.response.send_message(embed=build_teams_embed(event, teams))
        await interaction.followup.send(f"```\n{format_team_roster(event, teams)}\n```")

    @app_commands.command(name="admin-reset-teams", description="Undo a draw and reopen confirmations")
    async def reset_teams(self, interaction: discord.Interaction, event_id: int):
        actor = await self._actor(interaction)
        event = await self.bot.team_ops.reset_teams(actor, event_id)
        await interaction.response.send_message(
            f"🔄 Teams reset. Confirmations open until {format_local(event.rsvp_deadline)}."
        )

    @app_commands.command(name="admin-score", description="Register or correct the final score of a drawn game")
    async def score(self, interaction: discord.Interaction, event_id: int,
                    black: app_commands.Range[int, 0, 99], white: app_commands.Range[int, 0, 99]):
        actor = await self._actor(interaction)
        event = await self.bot.event_ops.get_event(event_id)
        if event.score_finalized:
            result = await self.bot.team_ops.edit_score(actor, event_id, black, white)
        else:
            result = await self.bot.team_ops.register_score(actor, event_id, black, white)
        await interaction.response.send_message(embed=build_score_embed(result, edited=event.score_finalized))

    @app_commands.command(name="admin-reset-score", description="Clear a game's score and its team points")
    async def reset_score(self, interaction: discord.Interaction, event_id: int):
        actor = await self._actor(interaction)
        removed = await self.bot.team_ops.reset_score(actor, event_id)
        await interaction.response.send_message(f"🔄 Score cleared for event #{event_id} ({removed} entries removed).")

    # ============================================================================
    # Dues, payments and cash
    # ============================================================================

    @app_commands.command(name="admin-generate-dues", description="Generate monthly dues for all active members")
    @app_commands.describe(month="Month as YYYY-MM")
    async def generate_dues(self, interaction: discord.Interaction, month: str):
        actor = await self._actor(interaction)
        year, month_number = _parse_period(month)
        result = await self.bot.dues_ops.generate_monthly_dues(actor, year, month_number)
        await interaction.response.send_message(embed=build_dues_result_embed(result))

    @app_commands.command(name="admin-exemption", description="Exempt a member from a month's due")
    @app_commands.describe(month="Month as YYYY-MM", reason="Why the member is exempt")
    async def exemption(self, interaction: discord.Interaction, member_id: int, month: str, reason: str):
        actor = await self._actor(interaction)
        year, month_number = _parse_period(month)
        exemption = await self.bot.dues_ops.create_exemption(actor, member_id, year, month_number, reason)
        await interaction.response.send_message(f"✅ Member #{member_id} exempt for {exemption.period}.")

    @app_commands.command(name="admin-edit-due", description="Correct a single due")
    @app_commands.choices(status=_enum_choices(DueStatus))
    async def edit_due(self, interaction: discord.Interaction, due_id: int, amount: Optional[str] = None,
                       status: Optional[app_commands.Choice[str]] = None):
        actor = await self._actor(interaction)
        due = await self.bot.dues_ops.update_due(
            actor, due_id, amount=_parse_amount(amount), status=status.value if status else None
        )
        await interaction.response.send_message(
            f"✅ Due #{due.id} ({due.period}): {format_money(due.amount)}, {due.status.name}."
        )

    @app_commands.command(name="admin-payments", description="Payments waiting for confirmation")
    async def payments(self, interaction: discord.Interaction):
        actor = await self._actor(interaction)
        self.bot.member_ops.require_admin(actor, "review payments")
        pending = await self.bot.finance_service.pending_payments()
        await interaction.response.send_message(embed=build_pending_payments_embed(pending), ephemeral=True)

    @app_commands.command(name="admin-confirm-payment", description="Confirm a payment and post it to the cash")
    async def confirm_payment(self, interaction: discord.Interaction, payment_id: int):
        actor = await self._actor(interaction)
        payment = await self.bot.payment_ops.confirm_payment(actor, payment_id)
        await interaction.response.send_message(
            f"✅ Payment #{payment.id} confirmed: {format_money(payment.amount)} added to the cash."
        )

    @app_commands.command(name="admin-cash-out", description="Record money leaving the club cash")
    @app_commands.choices(category=_enum_choices(None, CASH_OUT_CATEGORIES))
    @app_commands.describe(amount="Amount, e.g. 150,00")
    async def cash_out(self, interaction: discord.Interaction, category: app_commands.Choice[str],
                       amount: str, note: Optional[str] = None):
        actor = await self._actor(interaction)
        entry = await self.bot.cash_ops.record_cash_out(actor, category.value, _parse_amount(amount), note)
        balance = await self.bot.cash_service.balance()
        await interaction.response.send_message(
            f"🔴 {entry.category.name.title()} {format_money(entry.amount)} recorded. Balance: {format_money(balance)}"
        )

    @app_commands.command(name="admin-report", description="Monthly report of dues, cash, fines and events")
    @app_commands.describe(month="Month as YYYY-MM")
    async def report(self, interaction: discord.Interaction, month: str):
        actor = await self._actor(interaction)
        self.bot.member_ops.require_admin(actor, "view reports")
        year, month_number = _parse_period(month)
        report = await self.bot.report_service.monthly_report(year, month_number)
        await interaction.response.send_message(embed=build_report_embed(report))

    @app_commands.command(name="admin-set-pix", description="Set the PIX key members pay to")
    async def set_pix(self, interaction: discord.Interaction, key: str, recipient: Optional[str] = None):
        actor = await self._actor(interaction)
        self.bot.member_ops.require_admin(actor, "change the PIX key")
        await self.bot.config_service.set(ConfigKeys.PIX_KEY, key.strip(), interaction.user.id)
        if recipient is not None:
            await self.bot.config_service.set(ConfigKeys.PIX_RECIPIENT, recipient.strip(), interaction.user.id)
        await interaction.response.send_message("✅ PIX key updated.", ephemeral=True)

    # ============================================================================
    # Owner maintenance
    # ============================================================================

    @commands.command(name='shutdown')
    @commands.check(lambda ctx: ctx.author.id == Config.OWNER_DISCORD_ID)
    async def shutdown_bot(self, ctx):
        """Shutdown the bot (Owner only)"""
        await ctx.send("🔴 Shutting down Patota Bot...")
        await self.bot.close()


async def setup(bot):
    await bot.add_cog(AdminCog(bot))
