"""
procgate.ratelimit

Sliding-window admission control per caller identity.
"""

# Package marker.
