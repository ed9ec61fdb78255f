import json
from contextlib import asynccontextmanager
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from patota.config import Config
from patota.constants import ConfigKeys
from patota.database.models import Base, Member, Event, Configuration
from patota.utils.logger import setup_logger

# Runtime settings seeded on first start; admins change them with /admin-config
DEFAULT_CONFIGURATION = {
    ConfigKeys.PIX_KEY: "",
    ConfigKeys.PIX_RECIPIENT: "",
    ConfigKeys.ANNOUNCE_CHANNEL_ID: 0,
}


class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url or Config.DATABASE_URL
        self.engine = None
        self.async_session = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

        await self.initialize_default_data()

    async def initialize_default_data(self):
        """Seed configuration keys that are missing"""
        async with self.transaction() as session:
            result = await session.execute(select(Configuration.key))
            existing = set(result.scalars().all())

            missing = [key for key in DEFAULT_CONFIGURATION if key not in existing]
            for key in missing:
                session.add(Configuration(key=key, value=json.dumps(DEFAULT_CONFIGURATION[key])))

            if missing:
                self.logger.info(f"Seeded {len(missing)} default configuration keys")

    @property
    def session_factory(self) -> async_sessionmaker:
        """Session factory handed to the read-side services"""
        if self.async_session is None:
            raise RuntimeError("Database.initialize() must be awaited before use")
        return self.async_session

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        All operations within the context are committed together on success,
        or rolled back together on failure.

        Usage:
            async with db.transaction() as session:
                fine = await fine_ops.post_fine(..., session=session)
                await cash_ops.post_entry(..., session=session)
                # Both rows commit together here

        The caller passes the yielded session to every participating
        operation. Exceptions must propagate out of the context for the
        rollback to happen.
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # Member lookups
    async def get_member_by_discord_id(self, discord_id: int) -> Optional[Member]:
        async with self.get_session() as session:
            result = await session.execute(
                select(Member).where(Member.discord_id == discord_id)
            )
            return result.scalar_one_or_none()

    async def get_member_by_id(self, member_id: int) -> Optional[Member]:
        async with self.get_session() as session:
            return await session.get(Member, member_id)

    async def get_active_members(self) -> List[Member]:
        async with self.get_session() as session:
            result = await session.execute(
                select(Member).where(Member.is_active == True).order_by(Member.name)
            )
            return list(result.scalars().all())

    # Event lookups
    async def get_event_by_id(self, event_id: int) -> Optional[Event]:
        async with self.get_session() as session:
            return await session.get(Event, event_id)
