"""
RSVP buttons attached to an event embed.
"""

import discord

from patota.constants import UIConstants
from patota.database.models import RsvpStatus
from patota.utils.embeds import build_event_embed
from patota.utils.error_embeds import ErrorEmbeds
from patota.utils.exceptions import PatotaError
from patota.utils.logger import setup_logger

logger = setup_logger(__name__)


class RsvpView(discord.ui.View):
    """Going / Maybe / Not going buttons for one event; refreshes the embed on each answer."""

    def __init__(self, bot, event_id: int):
        super().__init__(timeout=UIConstants.RSVP_VIEW_TIMEOUT)
        self.bot = bot
        self.event_id = event_id

    async def _answer(self, interaction: discord.Interaction, status: RsvpStatus):
        member = await self.bot.member_ops.find_member_by_discord_id(interaction.user.id)
        if member is None:
            await interaction.response.send_message(
                embed=ErrorEmbeds.member_not_registered(interaction.user), ephemeral=True
            )
            return

        await self.bot.event_ops.confirm_presence(member.id, self.event_id, status)
        details = await self.bot.event_ops.get_event_details(self.event_id)
        if not details.confirmations_open:
            for child in self.children:
                child.disabled = True
        await interaction.response.edit_message(embed=build_event_embed(details), view=self)
        logger.info(f"{member.name} answered {status.name} for event {self.event_id} via buttons")

    @discord.ui.button(label="Going", emoji="✅", style=discord.ButtonStyle.success)
    async def going(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._answer(interaction, RsvpStatus.GOING)

    @discord.ui.button(label="Maybe", emoji="🤔", style=discord.ButtonStyle.secondary)
    async def maybe(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._answer(interaction, RsvpStatus.MAYBE)

    @discord.ui.button(label="Not going", emoji="❌", style=discord.ButtonStyle.danger)
    async def not_going(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._answer(interaction, RsvpStatus.NOT_GOING)

    async def on_error(self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item):
        if isinstance(error, PatotaError):
            embed = ErrorEmbeds.from_error(error)
        else:
            logger.error(f"RSVP button failed for event {self.event_id}: {error}", exc_info=error)
            embed = ErrorEmbeds.command_error("Could not save your answer")
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)
