"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

The club section mirrors what a club owner picks in the setup wizard:
belt system, stripe cost, locations and classes. Mock modes enable local
development without an Anthropic key or a database.
"""

import json
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    For maps (like location_classes), use a JSON object.
    """

    # API Configuration
    api_title: str = "Dojo Progress API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. Using a list enables key rotation without downtime."
    )

    # Anthropic Configuration
    anthropic_api_key: str = Field(
        default="",
        description="Claude API key. Required unless in mock mode."
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for parent messages."
    )
    anthropic_max_tokens: int = Field(
        default=512,
        description="Max tokens for Claude responses. Parent messages are a sentence or two."
    )
    anthropic_temperature: float = Field(
        default=0.7,
        description="Temperature for Claude."
    )
    anthropic_mock_mode: bool = Field(
        default=False,
        description="Use a canned-response client instead of Claude. Enables local dev without a key."
    )

    # Roster storage
    database_url: str = Field(
        default="sqlite:///data/dojo.db",
        description="SQLAlchemy URL of the roster database"
    )
    roster_mock_mode: bool = Field(
        default=False,
        description="Keep the roster in memory instead of in the database."
    )

    # Club
    club_name: str = Field(default="My Dojo")
    club_owner_name: str = Field(default="Head Coach")
    club_language: str = Field(
        default="English",
        description="Language parent messages are written in"
    )
    belt_system: str = Field(
        default="wt",
        description="Built-in belt system (wt, itf, karate, bjj, judo) or 'custom'"
    )
    custom_belt_names: str = Field(
        default="",
        description="Comma-separated belt names, lowest first. Used when belt_system is 'custom'."
    )
    points_per_stripe: int = Field(
        default=64,
        ge=1,
        description="Points a stripe costs unless a belt overrides it"
    )
    belt_points_per_stripe: str = Field(
        default="",
        description='JSON map of belt id to points per stripe, e.g. {"wt-5": 100}'
    )
    stripes_per_belt: int = Field(
        default=4,
        ge=1,
        description="Stripes a student needs before they can be marked ready for grading"
    )
    club_locations: str = Field(
        default="Main Location",
        description="Comma-separated locations. The first one is the default."
    )
    club_classes: str = Field(
        default="General Class,Kids Class,Adult Class,Sparring Team",
        description="Comma-separated classes used for locations without their own list"
    )
    location_classes: str = Field(
        default="",
        description='JSON map of location to class list, e.g. {"Downtown": ["Kids Class"]}'
    )
    grading_requirement_name: str = Field(
        default="",
        description="What the club calls the readiness requirement (e.g. 'Black Belt Prep')"
    )
    coach_bonus_enabled: bool = Field(default=False)
    homework_bonus_enabled: bool = Field(default=False)

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("belt_points_per_stripe", "location_classes")
    @classmethod
    def _must_be_json_object(cls, value: str) -> str:
        if value.strip():
            parsed = json.loads(value)
            if not isinstance(parsed, dict):
                raise ValueError("must be a JSON object")
        return value

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return _split(self.api_keys)

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return _split(self.cors_origins)

    @property
    def custom_belt_names_list(self) -> list[str]:
        return _split(self.custom_belt_names)

    @property
    def club_locations_list(self) -> list[str]:
        return _split(self.club_locations)

    @property
    def club_classes_list(self) -> list[str]:
        return _split(self.club_classes)

    @property
    def belt_points_per_stripe_map(self) -> dict[str, int]:
        if not self.belt_points_per_stripe.strip():
            return {}
        return {str(k): int(v) for k, v in json.loads(self.belt_points_per_stripe).items()}

    @property
    def location_classes_map(self) -> dict[str, list[str]]:
        if not self.location_classes.strip():
            return {}
        return {str(k): [str(c) for c in v] for k, v in json.loads(self.location_classes).items()}

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.anthropic_mock_mode and not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")

        if not self.roster_mock_mode and not self.database_url:
            missing.append("DATABASE_URL")

        if self.belt_system.lower() == "custom" and not self.custom_belt_names_list:
            missing.append("CUSTOM_BELT_NAMES")

        return missing


def _split(value: Optional[str]) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
