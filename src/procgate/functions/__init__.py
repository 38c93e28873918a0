"""
procgate.functions

Callable function definitions as the gateway consumes them.

Responsibilities:
- Definition value types and their cache serialization.
- Structural validation, cache-first resolution, and request parameter checks.
"""

# Package marker.
