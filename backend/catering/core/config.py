"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. The allocation engine reads two
business settings from here:

1. ``smallest_unit_map`` - the fixed coarse unit -> finer display unit table
   (Kg -> Gm, Ltr -> Ml in the default catalog).
2. ``default_adjust_quantity`` - whether new orders split allocations into
   adjusted/extra parts unless the order says otherwise.
"""

from functools import lru_cache
from typing import Dict, List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - defaults to a local SQLite file, override via env
    database_url: str = "sqlite:///./catering.db"

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    # ==========================================================================
    # Raw material allocation
    # ==========================================================================
    # JSON object in the environment, e.g. SMALLEST_UNIT_MAP='{"1": 2, "3": 4}'
    smallest_unit_map: Dict[int, int] = {1: 2, 3: 4}
    default_adjust_quantity: bool = False

    @field_validator("smallest_unit_map")
    @classmethod
    def validate_smallest_unit_map(cls, v: Dict[int, int]) -> Dict[int, int]:
        for coarse_id, finer_id in v.items():
            if coarse_id == finer_id:
                raise ValueError(
                    f"SMALLEST_UNIT_MAP maps measurement {coarse_id} onto itself"
                )
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
