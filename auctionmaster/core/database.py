import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from auctionmaster.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """All ORM models base class"""

    pass


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine, with pooling tuned for PostgreSQL when used"""
    if database_url.startswith("postgresql"):
        # Conservative settings to protect PostgreSQL
        pool_config = {
            "pool_size": 20,
            "max_overflow": 30,
            "pool_recycle": 120,  # Aggressive recycling to prevent leaks
            "pool_timeout": 10,  # Fail fast if pool exhausted
            "pool_pre_ping": True,
            "pool_use_lifo": True,
            "connect_args": {
                "server_settings": {
                    "timezone": "UTC",
                    "application_name": "auctionmaster",
                },
                "command_timeout": 30,
                "timeout": 15,
            },
        }
    else:
        pool_config = {}

    return create_async_engine(database_url, echo=False, future=True, **pool_config)


class Database:
    """Owns the engine and the session factory"""

    def __init__(self, database_url: str | None = None):
        self._url = database_url or settings.DATABASE_URL
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def url(self) -> str:
        return self._url

    def connect(self) -> None:
        """Create the engine (idempotent)"""
        if self._engine is None:
            self._engine = build_engine(self._url)
            self._sessionmaker = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            logger.info("Database engine created (%s)", self._engine.url.get_backend_name())

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self.connect()
        return self._engine

    def session(self) -> AsyncSession:
        """Open a new session; use as ``async with database.session() as s``"""
        if self._sessionmaker is None:
            self.connect()
        return self._sessionmaker()

    async def create_all(self) -> None:
        """Initialize database, create all tables"""
        async with self.engine.begin() as conn:
            # Import all models to ensure they are registered
            from auctionmaster.models import (  # noqa: F401
                AuctionRecord,
                BidRecord,
                ClaimRecord,
            )

            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close database connections"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
