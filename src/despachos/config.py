"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DESPACHOS_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Despachos Geofence API"
    api_prefix: str = "/api"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    # Google Routes API
    google_routes_api_key: Optional[str] = Field(
        default=None,
        description="API key sent as X-Goog-Api-Key to the Routes API.",
    )
    google_routes_url: str = Field(
        default="https://routes.googleapis.com/directions/v2:computeRoutes",
        description="computeRoutes endpoint used for waypoint order optimization.",
    )
    google_routes_timeout_seconds: float = Field(default=30.0, gt=0.0)

    # Depot (bodega) used as origin and destination of every optimized route
    depot_latitude: float = Field(default=13.6929, ge=-90.0, le=90.0)
    depot_longitude: float = Field(default=-89.2182, ge=-180.0, le=180.0)
    depot_name: str = Field(default="Bodega", description="Display name of the depot stop.")

    # Geofence gate
    driver_role: str = Field(
        default="motorista",
        description="Role description (case-insensitive, exact) that requires geofence verification.",
    )
    membership_backend: Literal["rpc", "local"] = Field(
        default="rpc",
        description="'rpc' delegates the point-in-geofence test to Supabase, 'local' evaluates it with shapely.",
    )
    membership_function: str = Field(
        default="is_user_in_customer_geofence",
        description="Name of the Supabase RPC performing the membership check.",
    )
    geolocation_timeout_ms: int = Field(default=10_000, ge=0)

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
