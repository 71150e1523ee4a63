"""
Roster file uploads (.csv, .txt, .xlsx) converted to importable text.
"""

from .reader import ImportFileError, read_roster_upload

__all__ = ["ImportFileError", "read_roster_upload"]
