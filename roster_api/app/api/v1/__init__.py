"""Version 1 of the roster API, mounted under ``/api/v1``."""
