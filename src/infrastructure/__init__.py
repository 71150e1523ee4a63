"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- anthropic: Claude API client for parent messages
- storage: Roster persistence (SQLAlchemy or in-memory) and pending imports
- spreadsheet: Uploaded roster files (CSV, Excel)

These wrappers translate between external formats and our domain models.
"""
