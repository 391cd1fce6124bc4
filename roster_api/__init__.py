"""
Top-level package for the Volunteer Roster API.

All functionality lives in submodules under ``app``; import them with
fully qualified names such as ``roster_api.app.main``.
"""

__all__ = []
