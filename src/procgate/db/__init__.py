"""
procgate.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The gateway reads through `procgate.db.store.SqlCredentialStore`; nothing outside
# this package issues SQL against the credential tables.
