"""
Central configuration loaded from environment variables with sensible defaults.
All secrets come from env vars; no hardcoded credentials.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class DatabaseConfig:
    host: str = os.getenv("PG_HOST", "localhost")
    port: int = int(os.getenv("PG_PORT", "5432"))
    user: str = os.getenv("PG_USER", "placemap")
    password: str = os.getenv("PG_PASSWORD", "placemap")
    database: str = os.getenv("PG_DATABASE", "placemap")
    min_pool_size: int = int(os.getenv("PG_POOL_MIN", "2"))
    max_pool_size: int = int(os.getenv("PG_POOL_MAX", "10"))
    # Per-statement timeout in seconds; exceeding it surfaces as StoreUnavailable
    command_timeout: float = float(os.getenv("PG_COMMAND_TIMEOUT", "10"))

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class StoreConfig:
    backend: str = os.getenv("STORE_BACKEND", "memory")  # memory | postgres
    places_collection: str = os.getenv("PLACES_COLLECTION", "places")
    # The document store rejects IN lists longer than this
    in_query_max_values: int = 30


@dataclass(frozen=True)
class SpatialConfig:
    # Grid bucketing: 0.01 deg ~ 1.1km
    cell_size_deg: float = 0.01
    # Viewports covering more cells than this are "zoom in", not a query
    max_cells_per_viewport: int = 100
    # 9 chars ~ 5m cell
    geohash_precision: int = 9
    # 7 chars ~ 150m tall cell; narrower in longitude away from the equator
    search_prefix_length: int = 7
    # Widest block of search cells (in rings around the point's cell) before a radius is refused
    max_search_rings: int = 4
    # Hard duplicate gate on place creation
    duplicate_threshold_m: float = float(os.getenv("DUPLICATE_THRESHOLD_M", "30"))
    # Soft "what's around" context for map markers
    nearby_context_radius_m: float = float(os.getenv("NEARBY_CONTEXT_RADIUS_M", "100"))
    # Upper bound on nearby queries; the search block widens with latitude to cover it
    max_nearby_radius_m: float = 150.0


@dataclass(frozen=True)
class SchedulerConfig:
    enabled: bool = os.getenv("SCHEDULER_ENABLED", "false").lower() == "true"
    interval_minutes: int = int(os.getenv("BACKFILL_INTERVAL_MIN", "60"))
    # How many documents to write per backfill run (0 = all)
    batch_size: int = int(os.getenv("BACKFILL_BATCH_SIZE", "500"))


@dataclass(frozen=True)
class APIConfig:
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "8000"))


@dataclass(frozen=True)
class Settings:
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    spatial: SpatialConfig = field(default_factory=SpatialConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
