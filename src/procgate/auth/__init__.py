"""
procgate.auth

Authentication package.

Responsibilities:
- Caller identity and credential models.
- JWT helpers, credential strategies, and the Authentication Dispatcher.
- FastAPI dependencies for the operator surface (Principal + RBAC).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Gateway authentication returns Ok/Err results; only the operator deps raise HTTPException.
