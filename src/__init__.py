"""
Dojo Progress - student progression and roster management for martial-arts clubs.

This package contains the complete application:
- core: Framework-agnostic business logic (belts, scoring, promotions, roster import)
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
