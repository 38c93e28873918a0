"""
procgate.api.routers.internal

Operator API package.

Responsibilities:
- Host operator-only endpoints under `/internal/v1/*`.
"""

# Package marker.
