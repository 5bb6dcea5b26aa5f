from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from ridematch.models.criteria import ScoringConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # MongoDB Configuration
    # ==========================================================================
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "ridematch"

    # ==========================================================================
    # Redis Configuration
    # ==========================================================================
    redis_url: str = "redis://localhost:6379/0"

    # ==========================================================================
    # Routing Collaborator (Google Maps Web Services)
    # ==========================================================================
    google_maps_api_key: Optional[str] = None
    google_maps_base_url: str = "https://maps.googleapis.com/maps/api"
    routing_timeout_seconds: float = 10.0
    route_cache_ttl_seconds: int = 3600  # 0 disables the route cache

    # ==========================================================================
    # Matching Configuration
    # ==========================================================================
    match_expiry_days: int = 30
    expired_match_retention_days: int = 7
    matching_max_concurrency: int = 8  # Parallel candidate analyses per batch
    matching_deadline_seconds: float = 20.0  # Batch deadline, partial results after
    min_match_score: float = 0.3
    apply_detour_time_gate: bool = True
    event_channel: str = "ridematch:match-events"
    match_expiry_job_minutes: int = 15

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    api_v1_str: str = "/api/v1"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into list."""
        if self.cors_origins == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def scoring_config(self) -> ScoringConfig:
        """
        Build the validated scoring configuration.

        Raises InvalidCriteria on bad values so misconfiguration fails at
        startup rather than during scoring.
        """
        return ScoringConfig(
            min_match_score=self.min_match_score,
            apply_detour_time_gate=self.apply_detour_time_gate,
            max_concurrency=self.matching_max_concurrency,
        )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading env vars on every request.
    """
    return Settings()


# Convenience export
settings = get_settings()
