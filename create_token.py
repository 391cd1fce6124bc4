"""Print a long-lived bearer token for an existing member.

Usage:
    python create_token.py admin@example.org [days]
"""
import sys

from roster_api.app.core.security import create_access_token

email = sys.argv[1] if len(sys.argv) > 1 else "admin@example.org"
days = int(sys.argv[2]) if len(sys.argv) > 2 else 365
token = create_access_token({"sub": email}, expires_delta=days * 24 * 60 * 60)
print(token)
