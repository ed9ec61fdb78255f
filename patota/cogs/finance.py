import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional

from patota.constants import PaginationConstants
from patota.data_models.finance import DueTarget, FineTarget
from patota.utils.embeds import build_balance_embed, build_pendencies_embed
from patota.utils.error_embeds import ErrorEmbeds
from patota.utils.exceptions import ValidationError
from patota.utils.logger import setup_logger
from patota.utils.money import format_money, parse_money

logger = setup_logger(__name__)


class FinanceCog(commands.Cog):
    """Member finance commands: pendencies, payments, guests, cash and PIX"""

    def __init__(self, bot):
        self.bot = bot
        self.logger = logger

    async def _member_or_reply(self, interaction: discord.Interaction):
        member = await self.bot.member_ops.find_member_by_discord_id(interaction.user.id)
        if member is None:
            await interaction.response.send_message(
                embed=ErrorEmbeds.member_not_registered(interaction.user), ephemeral=True
            )
        return member

    @app_commands.command(name="pendencies", description="Show your open dues and fines")
    async def pendencies(self, interaction: discord.Interaction):
        member = await self._member_or_reply(interaction)
        if member is None:
            return
        pendencies = await self.bot.finance_service.pendencies(member.id)
        await interaction.response.send_message(
            embed=build_pendencies_embed(member.name, pendencies, self.bot.config_service.pix_key),
            ephemeral=True
        )

    @app_commands.command(name="pay", description="Send a payment proof for a due or fine")
    @app_commands.describe(
        kind="What you are paying",
        item_id="The due or fine number shown in /pendencies",
        proof="Receipt screenshot",
        amount="Amount paid, e.g. 35,00 (defaults to the full amount)"
    )
    @app_commands.choices(kind=[
        app_commands.Choice(name="Due", value="due"),
        app_commands.Choice(name="Fine", value="fine"),
    ])
    async def pay(self, interaction: discord.Interaction, kind: app_commands.Choice[str], item_id: int,
                  proof: Optional[discord.Attachment] = None, amount: Optional[str] = None):
        member = await self._member_or_reply(interaction)
        if member is None:
            return
        cents = None
        if amount:
            try:
                cents = parse_money(amount)
            except ValueError as e:
                raise ValidationError(str(e)) from e
        target = DueTarget(item_id) if kind.value == "due" else FineTarget(item_id)
        payment = await self.bot.payment_ops.submit_payment(
            member.id, target, amount=cents, proof_url=proof.url if proof else None
        )
        await interaction.response.send_message(
            f"🧾 Payment #{payment.id} of {format_money(payment.amount)} sent. An admin will confirm it soon.",
            ephemeral=True
        )

    @app_commands.command(name="guest", description="Register guests you brought to an event")
    @app_commands.describe(event_id="Event number", count="Number of guests",
                           member_id="Member who brought them (admins only, defaults to you)")
    async def guest(self, interaction: discord.Interaction, event_id: int,
                    count: app_commands.Range[int, 1, 30], member_id: Optional[int] = None):
        actor = await self.bot.member_ops.resolve_actor(interaction.user.id)
        fine = await self.bot.fine_ops.add_guest(actor, event_id, member_id or actor.member_id, count)
        await interaction.response.send_message(
            f"👥 {fine.note} registered for event #{event_id}: {format_money(fine.amount)} added to pendencies."
        )

    @app_commands.command(name="balance", description="Show the club cash balance and latest entries")
    async def balance(self, interaction: discord.Interaction):
        balance = await self.bot.cash_service.balance()
        entries = await self.bot.cash_service.ledger(limit=PaginationConstants.LEDGER_PAGE_SIZE)
        await interaction.response.send_message(embed=build_balance_embed(balance, entries))

    @app_commands.command(name="pix", description="Show the PIX key for payments")
    async def pix(self, interaction: discord.Interaction):
        key = self.bot.config_service.pix_key
        if not key:
            await interaction.response.send_message("💳 No PIX key configured yet. Ask an admin.", ephemeral=True)
            return
        recipient = self.bot.config_service.pix_recipient
        await interaction.response.send_message(
            f"💳 PIX key: `{key}`" + (f"\nRecipient: {recipient}" if recipient else ""),
            ephemeral=True
        )


async def setup(bot):
    await bot.add_cog(FinanceCog(bot))
