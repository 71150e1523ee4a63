"""
Core business logic for club progression and roster management.

This module is framework-agnostic - it doesn't import FastAPI, Anthropic,
or any storage concerns. Students go in, updated students come out; what
happens to them next is the caller's business.
"""
