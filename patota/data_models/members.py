"""
Member identity as seen by the operations layer.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation and their role flag."""
    member_id: Optional[int]
    name: str
    is_admin: bool = False
    discord_id: Optional[int] = None
