"""
Bot-wide constants for the Patota club bot.

Fee amounts and deadlines are policy and live in ``ClubPolicy``; this module
only holds presentation and paging values.
"""

class PaginationConstants:
    """Constants for paginated displays."""

    # Rows shown in the ranking embed
    RANKING_PAGE_SIZE = 15

    # Cash entries shown by /balance
    LEDGER_PAGE_SIZE = 10

    # Upcoming events shown by /events
    EVENTS_PAGE_SIZE = 10

class UIConstants:
    """Constants for Discord UI elements."""

    # Embed colors
    DEFAULT_EMBED_COLOR = 0x3498db  # Blue
    GOLD_RANK_COLOR = 0xffd700     # Gold for the ranking leader
    ERROR_COLOR = 0xe74c3c         # Red for errors
    SUCCESS_COLOR = 0x2ecc71       # Green for success
    WARNING_COLOR = 0xf39c12       # Orange for pendencies
    BLACK_TEAM_COLOR = 0x2c2f33
    WHITE_TEAM_COLOR = 0xf5f5f5

    # Emoji for UI elements
    TROPHY_EMOJI = "🏆"
    BALL_EMOJI = "⚽"
    MONEY_EMOJI = "💰"
    BLACK_TEAM_EMOJI = "⚫"
    WHITE_TEAM_EMOJI = "⚪"

    # RSVP view timeout (seconds); None keeps the buttons alive
    RSVP_VIEW_TIMEOUT = None

class ConfigKeys:
    """Keys of runtime settings stored in the configuration table."""

    PIX_KEY = 'club.pix_key'
    PIX_RECIPIENT = 'club.pix_recipient'
    ANNOUNCE_CHANNEL_ID = 'club.announce_channel_id'
