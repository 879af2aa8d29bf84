# File: app/api/endpoints/__init__.py
"""
API endpoints package for ContactHub.

This package contains the endpoint modules for groups, schedules,
occurrences and holidays.
"""

from app.api.endpoints import (
    groups,
    holidays,
    occurrences,
    schedules,
)
