import os
from dataclasses import dataclass
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

class Config:
    """Bot configuration settings"""

    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    DISCORD_GUILD_ID = int(os.getenv('DISCORD_GUILD_ID', 0))
    DISCORD_GUILD_IDS = os.getenv('DISCORD_GUILD_IDS', '')  # Comma-separated for multi-guild support
    OWNER_DISCORD_ID = int(os.getenv('OWNER_DISCORD_ID', 0))

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///patota.db')

    # Bot settings
    COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # Club settings
    CLUB_NAME = os.getenv('CLUB_NAME', 'Patota CCC')
    CLUB_TIMEZONE = os.getenv('CLUB_TIMEZONE', 'America/Sao_Paulo')

    # Money values are integer cents (3500 == R$ 35,00)
    MONTHLY_FEE = int(os.getenv('MONTHLY_FEE', 3500))
    DUE_DAY = int(os.getenv('DUE_DAY', 10))
    LATE_FEE = int(os.getenv('LATE_FEE', 500))
    NO_SHOW_FEE = int(os.getenv('NO_SHOW_FEE', 1000))
    GUEST_FEE = int(os.getenv('GUEST_FEE', 500))

    # Team draw settings
    CONFIRMATION_REOPEN_HOURS = int(os.getenv('CONFIRMATION_REOPEN_HOURS', 6))
    MIN_PLAYERS_FOR_DRAW = int(os.getenv('MIN_PLAYERS_FOR_DRAW', 2))

    @classmethod
    def get_guild_ids(cls):
        """Get list of guild IDs for command syncing"""
        if cls.DISCORD_GUILD_IDS:
            # Multi-guild support: comma-separated IDs
            try:
                return [int(guild_id.strip()) for guild_id in cls.DISCORD_GUILD_IDS.split(',') if guild_id.strip()]
            except ValueError:
                raise ValueError("DISCORD_GUILD_IDS must be comma-separated integers")
        elif cls.DISCORD_GUILD_ID:
            # Single guild support
            return [cls.DISCORD_GUILD_ID]
        else:
            # Global sync
            return []

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not cls.DISCORD_GUILD_ID and not cls.DISCORD_GUILD_IDS:
            raise ValueError("Either DISCORD_GUILD_ID or DISCORD_GUILD_IDS is required")
        if not cls.OWNER_DISCORD_ID:
            raise ValueError("OWNER_DISCORD_ID is required")
        if not 1 <= cls.DUE_DAY <= 28:
            raise ValueError("DUE_DAY must be between 1 and 28")


@dataclass(frozen=True)
class ClubPolicy:
    """Fee amounts and deadlines injected into the dues, fine and team draw engines."""
    monthly_fee: int = 3500
    due_day: int = 10
    late_fee: int = 500
    no_show_fee: int = 1000
    guest_fee: int = 500
    confirmation_reopen: timedelta = timedelta(hours=6)
    min_players_for_draw: int = 2

    @classmethod
    def from_config(cls) -> "ClubPolicy":
        return cls(
            monthly_fee=Config.MONTHLY_FEE,
            due_day=Config.DUE_DAY,
            late_fee=Config.LATE_FEE,
            no_show_fee=Config.NO_SHOW_FEE,
            guest_fee=Config.GUEST_FEE,
            confirmation_reopen=timedelta(hours=Config.CONFIRMATION_REOPEN_HOURS),
            min_players_for_draw=Config.MIN_PLAYERS_FOR_DRAW,
        )
