"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be mocked for testing
- Configuration is centralized

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.club import build_club_config
from ..config.settings import Settings, get_settings
from ..core.club import ClubConfig
from ..core.progression import MessageWriter, ProgressionEngine, TextGenerator
from ..infrastructure.anthropic.client import (
    AnthropicConfig,
    AnthropicTextClient,
    MockLanguageModelClient,
)
from ..infrastructure.storage import (
    ImportBatchRegistry,
    StudentStore,
    create_student_store,
)

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared instances: the roster store and pending imports must survive
# across requests, and one Anthropic client reuses its connection pool.
_student_store = None
_import_registry = None
_text_generator = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_club_config(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ClubConfig:
    try:
        return build_club_config(settings)
    except ValueError as e:
        logger.error("Invalid club configuration", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Club is misconfigured: {e}",
        )


def get_progression_engine(
    config: Annotated[ClubConfig, Depends(get_club_config)],
) -> ProgressionEngine:
    """The engine is stateless, so we create a new instance per request."""
    return ProgressionEngine(
        ledger=config.ledger,
        policy=config.policy,
        bonus_enabled=config.coach_bonus_enabled,
        homework_enabled=config.homework_bonus_enabled,
    )


def get_text_generator(
    settings: Annotated[Settings, Depends(get_settings)],
) -> TextGenerator:
    """
    Provide the parent-message writer.

    In mock mode the writer sits on a canned-response client, so the whole
    flow works without an Anthropic key.
    """
    global _text_generator

    if _text_generator is None:
        if settings.anthropic_mock_mode:
            _text_generator = MessageWriter(MockLanguageModelClient())
            logger.info("Created mock text generator")
        else:
            config = AnthropicConfig(
                api_key=settings.anthropic_api_key,
                model=settings.anthropic_model,
                max_tokens=settings.anthropic_max_tokens,
                temperature=settings.anthropic_temperature,
            )
            _text_generator = MessageWriter(AnthropicTextClient(config))
            logger.info("Created Anthropic text generator", extra={"model": settings.anthropic_model})

    return _text_generator


def get_student_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StudentStore:
    """
    Provide the roster store.

    In mock mode the in-memory store is shared across requests so that
    students persist during the testing session.
    """
    global _student_store

    if _student_store is None:
        _student_store = create_student_store(
            mock_mode=settings.roster_mock_mode,
            database_url=settings.database_url,
        )
    return _student_store


def get_import_registry() -> ImportBatchRegistry:
    global _import_registry

    if _import_registry is None:
        _import_registry = ImportBatchRegistry()
        logger.info("Created import batch registry")
    return _import_registry


def reset_shared_instances() -> None:
    """Drop the shared store, registry and writer (used by tests)."""
    global _student_store, _import_registry, _text_generator
    _student_store = None
    _import_registry = None
    _text_generator = None


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
ClubConfigDep = Annotated[ClubConfig, Depends(get_club_config)]
ProgressionEngineDep = Annotated[ProgressionEngine, Depends(get_progression_engine)]
TextGeneratorDep = Annotated[TextGenerator, Depends(get_text_generator)]
StudentStoreDep = Annotated[StudentStore, Depends(get_student_store)]
ImportRegistryDep = Annotated[ImportBatchRegistry, Depends(get_import_registry)]
