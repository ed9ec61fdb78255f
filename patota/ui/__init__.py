"""
Discord UI components for the Patota club bot.

- RsvpView: Going / Maybe / Not going buttons under an event embed
"""
