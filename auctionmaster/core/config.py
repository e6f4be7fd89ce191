from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Auction engine configuration settings"""

    # Application basic settings
    APP_NAME: str = "AuctionMaster"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # PostgreSQL database settings
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "127.0.0.1"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "auctionmaster"

    # Any SQLAlchemy async URL, e.g. sqlite+aiosqlite:///./auctions.db
    DATABASE_URL_OVERRIDE: str | None = None

    # Redis settings
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None

    # Active auction cache: memory, redis or none
    AUCTION_CACHE_BACKEND: str = "memory"
    AUCTION_CACHE_KEY: str = "auctions:active"

    # Listing limits
    MAX_ACTIVE_PER_PLAYER: int = 5
    MIN_DURATION_HOURS: int = 1
    MAX_DURATION_HOURS: int = 168

    # Pricing
    MIN_START_PRICE: float = 1.0
    MAX_START_PRICE: float = 1_000_000.0
    MIN_BID_INCREMENT: float = 5.0
    LISTING_FEE: float = 10.0
    LISTING_FEE_PERCENTAGE: float = 0.05

    # Cancellation
    ALLOW_SELLER_CANCEL: bool = True
    CANCEL_FEE_PERCENTAGE: float = 0.10

    # Items that can never be listed
    BLACKLISTED_CATEGORIES: list[str] = []
    BLACKLISTED_MATERIALS: list[str] = [
        "AIR",
        "BARRIER",
        "COMMAND_BLOCK",
        "CHAIN_COMMAND_BLOCK",
        "REPEATING_COMMAND_BLOCK",
        "BEDROCK",
    ]

    # Settlement retries (claims must never be dropped)
    SETTLEMENT_RETRY_ATTEMPTS: int = 3
    SETTLEMENT_RETRY_DELAY_SECONDS: float = 0.5

    # Scheduler
    EXPIRATION_INTERVAL_SECONDS: float = 30
    CACHE_REFRESH_INTERVAL_SECONDS: float = 300
    BACKUP_INTERVAL_HOURS: float = 1
    CLEANUP_INTERVAL_HOURS: float = 24
    AUTO_CLEANUP_DAYS: int = 30

    # Backups
    BACKUP_DIR: str = "./backups"
    BACKUP_KEEP_COUNT: int = 30

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    @property
    def DATABASE_URL(self) -> str:
        """Generate async database connection string"""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def REDIS_URL(self) -> str:
        """Generate Redis connection string"""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def min_duration(self) -> timedelta:
        return timedelta(hours=self.MIN_DURATION_HOURS)

    @property
    def max_duration(self) -> timedelta:
        return timedelta(hours=self.MAX_DURATION_HOURS)

    @property
    def cleanup_threshold(self) -> timedelta:
        """Age after which expired/claimed auctions are deleted"""
        return timedelta(days=self.AUTO_CLEANUP_DAYS)

    def is_item_allowed(self, category: str, material: str) -> bool:
        """Check both the category and the material blacklist"""
        blocked_categories = {c.upper() for c in self.BLACKLISTED_CATEGORIES}
        blocked_materials = {m.upper() for m in self.BLACKLISTED_MATERIALS}
        return (
            category.upper() not in blocked_categories
            and material.upper() not in blocked_materials
        )

    def calculate_listing_fee(self, start_price: float) -> float:
        """Listing fee is the flat fee or the percentage, whichever is higher"""
        return max(self.LISTING_FEE, start_price * self.LISTING_FEE_PERCENTAGE)

    def calculate_cancellation_fee(self, current_bid: float) -> float:
        return current_bid * self.CANCEL_FEE_PERCENTAGE


settings = Settings()
