"""
procgate.gateway

Request-admission pipeline and response packaging.

Responsibilities:
- The state machine that runs authentication, authorization, admission, and resolution.
- Success/failure envelopes and rate-limit headers.
"""

# Package marker.
