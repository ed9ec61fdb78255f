import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional

from patota.constants import PaginationConstants
from patota.database.models import RsvpStatus
from patota.ui.rsvp_view import RsvpView
from patota.utils.embeds import build_event_embed, build_events_list_embed, build_teams_embed
from patota.utils.error_embeds import ErrorEmbeds
from patota.utils.logger import setup_logger
from patota.utils.roster import format_team_roster

logger = setup_logger(__name__)

RSVP_CHOICES = [
    app_commands.Choice(name="Going", value=RsvpStatus.GOING.name),
    app_commands.Choice(name="Maybe", value=RsvpStatus.MAYBE.name),
    app_commands.Choice(name="Not going", value=RsvpStatus.NOT_GOING.name),
]


class EventsCog(commands.Cog):
    """Member commands: signup, events, RSVP and drawn teams"""

    def __init__(self, bot):
        self.bot = bot
        self.logger = logger

    @app_commands.command(name="join", description="Register yourself as a club member")
    @app_commands.describe(name="The name shown in rosters and rankings (defaults to your Discord name)")
    async def join(self, interaction: discord.Interaction, name: Optional[str] = None):
        member = await self.bot.member_ops.register_member(
            interaction.user.id, name or interaction.user.display_name
        )
        await interaction.response.send_message(
            f"✅ Welcome to the club, **{member.name}**! (member #{member.id})", ephemeral=True
        )

    @app_commands.command(name="events", description="List upcoming events")
    async def events(self, interaction: discord.Interaction):
        upcoming = await self.bot.event_ops.list_upcoming_events(limit=PaginationConstants.EVENTS_PAGE_SIZE)
        await interaction.response.send_message(embed=build_events_list_embed(upcoming))

    @app_commands.command(name="next-event", description="Show the next event with RSVP buttons")
    async def next_event(self, interaction: discord.Interaction):
        event = await self.bot.event_ops.get_next_event()
        if event is None:
            await interaction.response.send_message("📅 No upcoming events.", ephemeral=True)
            return
        await self._send_event(interaction, event.id)

    @app_commands.command(name="event", description="Show an event with RSVP buttons")
    @app_commands.describe(event_id="Event number")
    async def event(self, interaction: discord.Interaction, event_id: int):
        await self._send_event(interaction, event_id)

    async def _send_event(self, interaction: discord.Interaction, event_id: int):
        details = await self.bot.event_ops.get_event_details(event_id)
        view = RsvpView(self.bot, event_id) if details.confirmations_open else None
        if view is None:
            await interaction.response.send_message(embed=build_event_embed(details))
        else:
            await interaction.response.send_message(embed=build_event_embed(details), view=view)

    @app_commands.command(name="rsvp", description="Confirm whether you are going to an event")
    @app_commands.describe(event_id="Event number", status="Your answer")
    @app_commands.choices(status=RSVP_CHOICES)
    async def rsvp(self, interaction: discord.Interaction, event_id: int, status: app_commands.Choice[str]):
        member = await self.bot.member_ops.find_member_by_discord_id(interaction.user.id)
        if member is None:
            await interaction.response.send_message(
                embed=ErrorEmbeds.member_not_registered(interaction.user), ephemeral=True
            )
            return
        await self.bot.event_ops.confirm_presence(member.id, event_id, status.value)
        await interaction.response.send_message(
            f"✅ Answer saved: **{status.name}** for event #{event_id}.", ephemeral=True
        )

    @app_commands.command(name="teams", description="Show the drawn teams of an event")
    @app_commands.describe(event_id="Event number", share="Also post the plain-text roster for sharing")
    async def teams(self, interaction: discord.Interaction, event_id: int, share: bool = False):
        event = await self.bot.event_ops.get_event(event_id)
        teams = await self.bot.team_ops.get_teams(event_id)
        if teams is None:
            await interaction.response.send_message(
                f"🔀 Teams for event #{event_id} have not been drawn yet.", ephemeral=True
            )
            return
        await interaction.response.send_message(embed=build_teams_embed(event, teams))
        if share:
            await interaction.followup.send(f"```\n{format_team_roster(event, teams)}\n```")


async def setup(bot):
    await bot.add_cog(EventsCog(bot))
