import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional

from patota.constants import PaginationConstants
from patota.utils.embeds import build_ranking_embed, build_stats_embed
from patota.utils.error_embeds import ErrorEmbeds
from patota.utils.exceptions import ValidationError
from patota.utils.logger import setup_logger
from patota.utils.time_parser import parse_month

logger = setup_logger(__name__)


class RankingCog(commands.Cog):
    """Points ranking and member statistics"""

    def __init__(self, bot):
        self.bot = bot
        self.logger = logger

    @app_commands.command(name="ranking", description="Show the points ranking")
    @app_commands.describe(month="Month as YYYY-MM (leave empty for the all-time ranking)")
    async def ranking(self, interaction: discord.Interaction, month: Optional[str] = None):
        await interaction.response.defer()
        if month:
            try:
                year, month_number = parse_month(month)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            table = await self.bot.ranking_service.monthly_ranking(year, month_number)
        else:
            table = await self.bot.ranking_service.general_ranking()
        await interaction.followup.send(
            embed=build_ranking_embed(table, limit=PaginationConstants.RANKING_PAGE_SIZE)
        )

    @app_commands.command(name="stats", description="Show a member's statistics")
    @app_commands.describe(user="Member to look up (defaults to you)")
    async def stats(self, interaction: discord.Interaction, user: Optional[discord.User] = None):
        target = user or interaction.user
        member = await self.bot.member_ops.find_member_by_discord_id(target.id)
        if member is None:
            await interaction.response.send_message(embed=ErrorEmbeds.member_not_registered(target), ephemeral=True)
            return
        stats = await self.bot.ranking_service.member_stats(member.id)
        embed = build_stats_embed(stats)
        embed.set_thumbnail(url=target.display_avatar.url)
        await interaction.response.send_message(embed=embed)


async def setup(bot):
    await bot.add_cog(RankingCog(bot))
