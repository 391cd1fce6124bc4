"""
Pydantic schema definitions for API payloads.

Each domain (users, services, assignments, swaps, availability,
notifications) defines its own request and response models.  Schemas
are kept apart from the SQL in the service layer.
"""
