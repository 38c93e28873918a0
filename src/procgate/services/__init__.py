"""
procgate.services

Service-layer package.

Responsibilities:
- Assemble the gateway object graph (stores, caches, strategies, pipeline) from settings.
- Own the lifetime of shared outbound clients (Redis, httpx, executor engine).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services are plain Python and take their collaborators explicitly, so tests can
# swap any of them for a fake.
