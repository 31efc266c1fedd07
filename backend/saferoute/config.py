"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Scoring weights and the balanced-route penalty are tunable defaults,
    not calibrated constants. Changing them changes which route is shown
    as "safest" or "balanced", so document any override.
    """

    # Application
    app_name: str = "SafeRoute Scoring API"
    app_env: str = Field(default="development", description="Environment: development, staging, production")
    debug: bool = False

    # Database (community reports)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./saferoute.db",
        description="Async SQLAlchemy URL for the community report store.",
    )

    # Datasets
    crime_data_path: Optional[str] = Field(default=None, description="Incident CSV (LAT_WGS84, LONG_WGS84, OCC_DATE)")
    lighting_data_path: Optional[str] = Field(default=None, description="Pre-binned lighting CSV (lat_bin, lon_bin, light_count)")
    grid_cache_dir: Optional[str] = Field(default=None, description="Directory holding serialized SafetyGrids")
    incident_days_back: int = Field(default=365, ge=1)

    # Grid geometry (Toronto by default)
    grid_lat_min: float = 43.58
    grid_lat_max: float = 43.85
    grid_lng_min: float = -79.64
    grid_lng_max: float = -79.12
    grid_cell_size_degrees: float = Field(default=0.005, gt=0)
    lighting_source_cell_size_degrees: float = Field(default=0.005, gt=0)

    # Scoring
    crime_weight: float = Field(default=0.6, ge=0, le=1)
    lighting_weight: float = Field(default=0.4, ge=0, le=1)
    balanced_distance_penalty: float = Field(default=40.0, ge=0)
    sample_spacing_meters: float = Field(default=50.0, gt=0)

    # Community reports
    report_proximity_meters: float = Field(default=50.0, gt=0)
    report_fresh_hours: float = Field(default=48.0, gt=0)
    report_confirm_upvotes: int = Field(default=3, ge=0)
    report_min_confidence: float = Field(default=50.0, ge=0, le=100)

    # Google Maps Platform
    google_maps_api_key: str = ""
    directions_url: str = "https://maps.googleapis.com/maps/api/directions/json"
    places_url: str = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
    provider_timeout_seconds: float = Field(default=10.0, gt=0)
    provider_max_retries: int = Field(default=1, ge=0, le=3)
    provider_retry_backoff_seconds: float = Field(default=0.5, ge=0)
    places_radius_meters: int = Field(default=2000, ge=50, le=50000)

    # Route request cache
    route_cache_max_entries: int = Field(default=256, ge=1)
    route_cache_ttl_seconds: int = Field(default=600, ge=1)
    serve_stale_routes: bool = True

    # CORS
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:8080", "http://localhost:3000"]

    # Logging
    log_level: str = "INFO"
    log_requests: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    def validate_production_settings(self) -> List[str]:
        """Validate settings are usable in production. Returns list of errors."""
        errors = []

        if self.is_production():
            if not self.google_maps_api_key:
                errors.append("GOOGLE_MAPS_API_KEY must be set in production")

            if any("localhost" in origin for origin in self.cors_origins):
                errors.append("CORS_ORIGINS should not include localhost in production")

            if self.debug:
                errors.append("DEBUG must be False in production")

            if not (self.crime_data_path or self.grid_cache_dir):
                errors.append("CRIME_DATA_PATH or GRID_CACHE_DIR must be set in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
