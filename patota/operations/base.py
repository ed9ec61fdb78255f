"""
Shared plumbing for the operations layer.

Every operations class takes the ``Database`` and, where money or deadlines
are involved, a ``ClubPolicy``. Writes go through ``store_guard`` so that
SQLAlchemy failures surface as ``Conflict`` / ``StoreError`` with a reason
the member can act on.
"""

import json
from contextlib import asynccontextmanager
from enum import Enum
from typing import Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from patota.config import ClubPolicy
from patota.data_models.members import Actor
from patota.database.models import AuditLog
from patota.utils.exceptions import PatotaError, Conflict, Forbidden, StoreError, ValidationError
from patota.utils.logger import setup_logger

logger = setup_logger(__name__)

E = TypeVar('E', bound=Enum)


def require_admin(actor: Actor, action: str) -> None:
    """Raise Forbidden unless the caller holds the admin role."""
    if actor is None or not actor.is_admin:
        name = actor.name if actor else 'anonymous'
        logger.warning(f"Rejected non-admin {name} trying to {action}")
        raise Forbidden(action)


def coerce_enum(enum_cls: Type[E], value, label: str) -> E:
    """Accept an enum member or its name/value as typed by a user."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip()
        for member in enum_cls:
            if key.upper() == member.name or key.lower() == member.value:
                return member
    options = ', '.join(member.name for member in enum_cls)
    raise ValidationError(f"Invalid {label} '{value}'. Use one of: {options}")


def validate_non_negative_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be a whole number")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative (got {value})")
    return value


def validate_positive_int(value, label: str) -> int:
    validate_non_negative_int(value, label)
    if value == 0:
        raise ValidationError(f"{label} must be greater than zero")
    return value


class BaseOperations:
    """Common session handling, auditing and error translation."""

    def __init__(self, database, policy: Optional[ClubPolicy] = None):
        self.db = database
        self.policy = policy or ClubPolicy.from_config()
        self.logger = logger

    @asynccontextmanager
    async def _get_session_context(self, session: Optional[AsyncSession] = None):
        """
        Provides a session context. Uses the provided session if available,
        otherwise creates and manages a new session.
        """
        if session:
            yield session
        else:
            async with self.db.get_session() as new_session:
                yield new_session

    @asynccontextmanager
    async def store_guard(self, operation: str, conflict_reason: Optional[str] = None):
        """
        Translate store failures raised inside the block.

        Domain errors pass through untouched. A unique/check violation becomes
        ``Conflict``; anything else from SQLAlchemy becomes ``StoreError``.
        """
        try:
            yield
        except PatotaError:
            raise
        except IntegrityError as e:
            self.logger.warning(f"Integrity violation during {operation}: {e.orig}")
            raise Conflict(conflict_reason or f"Could not {operation}: it conflicts with existing data.") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Store failure during {operation}: {e}")
            raise StoreError(operation, str(e)) from e

    async def _audit(self, session: AsyncSession, actor: Optional[Actor], action: str,
                     target: Optional[str] = None, **details) -> None:
        session.add(AuditLog(
            user_id=actor.discord_id if actor else None,
            member_id=actor.member_id if actor else None,
            action=action,
            target=target,
            details=json.dumps(details, default=str) if details else None,
        ))
