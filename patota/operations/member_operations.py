"""
Member Operations Module

Member lifecycle and identity resolution:
- register_member(): idempotent self-signup from a Discord identity
- add_member(): admin registration by name and email
- set_member_active() / set_member_admin(): role and activity flags
- resolve_actor(): Discord identity -> Actor with the admin flag

Members are deactivated, never deleted, so their dues, fines and points
history stays intact.
"""

from typing import List, Optional

from sqlalchemy import select, func

from patota.config import Config
from patota.data_models.members import Actor
from patota.database.models import Member
from patota.operations.base import BaseOperations, require_admin
from patota.utils.exceptions import Conflict, NotFoundError, ValidationError


class MemberOperations(BaseOperations):
    """Business logic for member management and Discord identity mapping."""

    def __init__(self, database, owner_discord_id: Optional[int] = None):
        super().__init__(database)
        self.owner_discord_id = owner_discord_id if owner_discord_id is not None else Config.OWNER_DISCORD_ID

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = ' '.join((name or '').split())
        if not cleaned:
            raise ValidationError("Member name is required")
        if len(cleaned) > 100:
            raise ValidationError("Member name must be at most 100 characters")
        return cleaned

    @staticmethod
    def _clean_email(email: str) -> str:
        cleaned = (email or '').strip().lower()
        local, sep, domain = cleaned.partition('@')
        if not sep or not local or '.' not in domain:
            raise ValidationError(f"Invalid email address '{email}'")
        return cleaned

    async def register_member(self, discord_id: int, name: str) -> Member:
        """
        Get the member for a Discord identity, creating it on first use.

        Safe to call repeatedly; the existing row is returned untouched.
        """
        name = self._clean_name(name)
        async with self.store_guard("register member", "This Discord account is already registered."):
            async with self.db.transaction() as session:
                result = await session.execute(
                    select(Member).where(Member.discord_id == discord_id)
                )
                existing = result.scalar_one_or_none()
                if existing:
                    self.logger.debug(f"Found existing member {existing.id} for Discord user {discord_id}")
                    return existing

                member = Member(discord_id=discord_id, name=name, is_active=True)
                session.add(member)
                await session.flush()
                self.logger.info(f"Registered member {member.id} ({name}) for Discord user {discord_id}")
                return member

    async def add_member(self, actor: Actor, name: str, email: str,
                         discord_id: Optional[int] = None) -> Member:
        """Admin registration of a member by name and email."""
        require_admin(actor, "add members")
        name = self._clean_name(name)
        email = self._clean_email(email)

        async with self.store_guard("add member", f"A member with email {email} already exists."):
            async with self.db.transaction() as session:
                duplicate = await session.execute(
                    select(Member.id).where(func.lower(Member.email) == email)
                )
                if duplicate.scalar_one_or_none() is not None:
                    raise Conflict(f"A member with email {email} already exists.")
                if discord_id is not None:
                    taken = await session.execute(
                        select(Member.id).where(Member.discord_id == discord_id)
                    )
                    if taken.scalar_one_or_none() is not None:
                        raise Conflict("That Discord account is already linked to a member.")

                member = Member(name=name, email=email, discord_id=discord_id, is_active=True)
                session.add(member)
                await session.flush()
                await self._audit(session, actor, 'member_add', f"member:{member.id}", name=name, email=email)
                self.logger.info(f"{actor.name} added member {member.id} ({name})")
                return member

    async def _set_flag(self, actor: Actor, member_id: int, action: str, **values) -> Member:
        async with self.store_guard(action):
            async with self.db.transaction() as session:
                member = await session.get(Member, member_id)
                if member is None:
                    raise NotFoundError("Member", member_id)
                for column, value in values.items():
                    setattr(member, column, value)
                await self._audit(session, actor, action, f"member:{member_id}", **values)
                self.logger.info(f"{actor.name} {action} on member {member_id}: {values}")
                return member

    async def set_member_active(self, actor: Actor, member_id: int, active: bool) -> Member:
        require_admin(actor, "activate or deactivate members")
        return await self._set_flag(actor, member_id, 'member_set_active', is_active=bool(active))

    async def set_member_admin(self, actor: Actor, member_id: int, is_admin: bool) -> Member:
        require_admin(actor, "grant or revoke the admin role")
        return await self._set_flag(actor, member_id, 'member_set_admin', is_admin=bool(is_admin))

    async def list_members(self, active_only: bool = False) -> List[Member]:
        async with self._get_session_context() as session:
            query = select(Member)
            if active_only:
                query = query.where(Member.is_active == True)
            result = await session.execute(query.order_by(Member.name, Member.id))
            return list(result.scalars().all())

    async def get_member(self, member_id: int) -> Member:
        async with self._get_session_context() as session:
            member = await session.get(Member, member_id)
            if member is None:
                raise NotFoundError("Member", member_id)
            return member

    async def find_member_by_discord_id(self, discord_id: int) -> Optional[Member]:
        async with self._get_session_context() as session:
            result = await session.execute(
                select(Member).where(Member.discord_id == discord_id)
            )
            return result.scalar_one_or_none()

    async def resolve_actor(self, discord_id: int) -> Actor:
        """
        Map a Discord identity to the Actor used by admin-gated operations.

        The configured owner is always an admin, even before signing up.

        Raises:
            NotFoundError: If the identity is not a registered member
        """
        member = await self.find_member_by_discord_id(discord_id)
        is_owner = bool(self.owner_discord_id) and discord_id == self.owner_discord_id

        if member is None:
            if is_owner:
                return Actor(member_id=None, name="Owner", is_admin=True, discord_id=discord_id)
            raise NotFoundError("Member", hint="Use /join to register with the club first.")

        return Actor(
            member_id=member.id,
            name=member.name,
            is_admin=is_owner or (member.is_admin and member.is_active),
            discord_id=discord_id,
        )

    @staticmethod
    def require_admin(actor: Actor, action: str) -> None:
        require_admin(actor, action)
