"""
Application package of the Volunteer Roster API.

``core`` holds configuration, logging, storage, security, errors and
the event bus; ``services`` the business rules (assignments, swaps,
availability, scheduling, notifications); ``schemas`` the request and
response models; ``api/v1/endpoints`` one router per domain.
"""

from .main import app  # noqa: F401
