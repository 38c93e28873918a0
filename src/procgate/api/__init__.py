"""
procgate.api

API package for the procgate gateway.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring and request/response models.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Routers stay thin: build a `GatewayRequest` or call the coordinator, nothing more.
