import asyncio
import logging
import traceback
from typing import Optional

import discord
from discord.ext import commands
from discord import app_commands

from patota.config import ClubPolicy, Config
from patota.database.database import Database
from patota.operations.cash_operations import CashOperations
from patota.operations.dues_operations import DuesOperations
from patota.operations.event_operations import EventOperations
from patota.operations.fine_operations import FineOperations
from patota.operations.member_operations import MemberOperations
from patota.operations.payment_operations import PaymentOperations
from patota.operations.team_operations import TeamOperations
from patota.services import (
    CashLedgerService, ConfigurationService, FinanceService, RankingService, ReportService
)
from patota.utils.error_embeds import ErrorEmbeds
from patota.utils.exceptions import PatotaError, Forbidden
from patota.utils.logger import setup_logger

class PatotaBot(commands.Bot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.members = True

        super().__init__(
            command_prefix=Config.COMMAND_PREFIX,
            intents=intents,
            help_command=None
        )

        # Attach app command error handler
        self.tree.on_error = self.on_app_command_error

        self.db: Optional[Database] = None
        self.policy = ClubPolicy.from_config()
        self.config_service: Optional[ConfigurationService] = None
        self.logger = setup_logger(__name__)

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self.logger.info("Setting up Patota Bot...")

        self.db = Database()
        await self.db.initialize()

        self.config_service = ConfigurationService(self.db.session_factory)
        await self.config_service.load_all()
        self.logger.info("Configuration service initialized")

        self._build_layers()

        await self.load_cogs()
        await self._sync_commands()

        self.logger.info("Patota Bot setup complete!")

    def _build_layers(self):
        """Wire operations and services around the shared database and policy"""
        self.cash_ops = CashOperations(self.db, self.policy)
        self.fine_ops = FineOperations(self.db, self.policy, cash_ops=self.cash_ops)
        self.member_ops = MemberOperations(self.db)
        self.event_ops = EventOperations(self.db, self.policy, fine_ops=self.fine_ops)
        self.dues_ops = DuesOperations(self.db, self.policy)
        self.payment_ops = PaymentOperations(self.db, self.policy, cash_ops=self.cash_ops)
        self.team_ops = TeamOperations(self.db, self.policy)

        self.ranking_service = RankingService(self.db.session_factory)
        self.cash_service = CashLedgerService(self.db.session_factory)
        self.finance_service = FinanceService(self.db.session_factory)
        self.report_service = ReportService(self.db.session_factory)

    async def load_cogs(self):
        """Load all cogs"""
        cogs_to_load = [
            'patota.cogs.events',
            'patota.cogs.finance',
            'patota.cogs.ranking',
            'patota.cogs.admin',
        ]

        for cog in cogs_to_load:
            try:
                await self.load_extension(cog)
                self.logger.info(f"Loaded cog: {cog}")
            except Exception as e:
                self.logger.error(f"Failed to load cog {cog}: {e}", exc_info=True)

    async def _sync_commands(self):
        """Sync slash commands with Discord"""
        if not self.tree.get_commands():
            self.logger.warning("No application commands found to sync. Check for cog loading errors.")
            return

        try:
            guild_ids = Config.get_guild_ids()

            if guild_ids:
                # Guild-specific sync (instant updates)
                self.logger.info(f"Attempting to sync commands to {len(guild_ids)} guild(s): {guild_ids}...")
                for guild_id in guild_ids:
                    try:
                        guild = discord.Object(id=guild_id)
                        self.tree.copy_global_to(guild=guild)
                        synced = await self.tree.sync(guild=guild)
                        self.logger.info(f"Successfully synced {len(synced)} command(s) to guild {guild_id}")
                    except discord.errors.Forbidden:
                        self.logger.error(f"Permission error syncing to guild {guild_id}. Ensure the bot has the 'application.commands' scope and is in the guild.", exc_info=True)
                    except discord.errors.HTTPException as e:
                        self.logger.error(f"HTTP error syncing to guild {guild_id}. Status: {e.status}, Response: {e.text}", exc_info=True)
            else:
                # Global sync (can take up to 1 hour)
                self.logger.info("Attempting to sync commands globally... (Note: This can take up to an hour to propagate)")
                synced = await self.tree.sync()
                self.logger.info(f"Successfully synced {len(synced)} command(s) globally")
        except discord.DiscordException as e:
            self.logger.error(f"Failed to sync commands: {e}", exc_info=True)

    async def on_ready(self):
        """Called when the bot is ready"""
        self.logger.info(f'{self.user} has connected to Discord!')
        self.logger.info(f'Bot is in {len(self.guilds)} guilds')

        await self.change_presence(
            activity=discord.Game(name=f"{Config.CLUB_NAME} | /next-event")
        )

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        """Global error handler for slash commands"""
        command_name = interaction.command.name if interaction.command else 'Unknown'
        original = getattr(error, 'original', error)

        if isinstance(original, PatotaError):
            # Expected business rejection: show the specific reason
            level = logging.INFO if isinstance(original, Forbidden) else logging.WARNING
            self.logger.log(level, f"/{command_name} by {interaction.user} rejected: {original}")
            embed = ErrorEmbeds.from_error(original)
        elif isinstance(error, app_commands.CommandOnCooldown):
            embed = ErrorEmbeds.invalid_input(f"❌ Command is on cooldown. Try again in {error.retry_after:.2f} seconds.")
        elif isinstance(error, app_commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{command_name}' by user {interaction.user}")
            embed = ErrorEmbeds.permission_denied()
        else:
            self.logger.error(f"Error in app command '{command_name}': {error}", exc_info=error)
            embed = ErrorEmbeds.command_error("An unexpected error occurred while processing your command")

        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.DiscordException as e:
            self.logger.error(f"Failed to send error response: {e}")

    async def on_command_error(self, ctx: commands.Context, error: Exception):
        """Global error handler for prefix commands"""
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{ctx.command.name if ctx.command else 'Unknown'}' by user {ctx.author}")
            await ctx.send("❌ You don't have permission to use this command.")
            return

        self.logger.error(f"Unexpected error in command {ctx.command}: {error}")
        self.logger.error(''.join(traceback.format_exception(type(error), error, error.__traceback__)))
        await ctx.send(embed=ErrorEmbeds.command_error("An unexpected error occurred while processing your command"))

    async def close(self):
        """Cleanup when bot is shutting down"""
        self.logger.info("Shutting down Patota Bot...")

        if self.db:
            await self.db.close()

        await super().close()

async def main():
    """Main entry point"""
    Config.validate()

    bot = PatotaBot()

    try:
        await bot.start(Config.DISCORD_TOKEN)
    except KeyboardInterrupt:
        pass
    finally:
        await bot.close()

def run():
    """Console script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Interrupted")

if __name__ == "__main__":
    run()
