"""
Service layer.

Each service is a class of async classmethods that receives the acting
user explicitly, validates, writes through ``core.db`` and emits
domain events after committing.  API handlers only translate HTTP to
these calls.
"""
