"""
Centralized error embeds for consistent error handling across the club bot.

Domain errors already carry a specific, actionable ``user_message``; the
factory only picks the title and color for each error family.
"""

import discord

from patota.utils.exceptions import (
    PatotaError, Conflict, Forbidden, NotFoundError, StoreError, ValidationError
)


class ErrorEmbeds:
    """Centralized error embed factory for consistent error handling."""

    _TITLES = (
        (Forbidden, "Permission Denied"),
        (NotFoundError, "Not Found"),
        (ValidationError, "Invalid Input"),
        (Conflict, "Not Allowed Right Now"),
        (StoreError, "Database Error"),
    )

    @staticmethod
    def from_error(error: PatotaError) -> discord.Embed:
        """Render a domain error with its specific reason."""
        title = "Request Rejected"
        for error_type, label in ErrorEmbeds._TITLES:
            if isinstance(error, error_type):
                title = label
                break
        color = discord.Color.orange() if isinstance(error, Conflict) else discord.Color.red()
        return discord.Embed(title=title, description=error.user_message, color=color)

    @staticmethod
    def member_not_registered(user: discord.abc.User = None) -> discord.Embed:
        """Create embed for a Discord user with no member record."""
        who = user.mention if user else "This user"
        return discord.Embed(
            title="Not a Member Yet",
            description=f"{who} hasn't joined the club yet!\n\nUse `/join` to register.",
            color=discord.Color.red()
        )

    @staticmethod
    def command_error(error: str) -> discord.Embed:
        """Create embed for unexpected command errors."""
        return discord.Embed(
            title="Command Error",
            description=f"An error occurred: {error}\n\nPlease try again or contact an administrator.",
            color=discord.Color.red()
        )

    @staticmethod
    def invalid_input(message: str) -> discord.Embed:
        return discord.Embed(
            title="Invalid Input",
            description=message,
            color=discord.Color.red()
        )

    @staticmethod
    def permission_denied() -> discord.Embed:
        return discord.Embed(
            title="Permission Denied",
            description="You don't have permission to perform this action.",
            color=discord.Color.red()
        )
