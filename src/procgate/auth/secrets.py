"""
procgate.auth.secrets

bcrypt helpers for API-key client secrets.
"""

from __future__ import annotations

import bcrypt


def hash_secret(secret: str) -> str:
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_secret(secret: str, secret_hash: str) -> bool:
    try:
        return bcrypt.checkpw(secret.encode("utf-8"), secret_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash (e.g. a legacy plaintext column value).
        return False
