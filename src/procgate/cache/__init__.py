"""
procgate.cache

Disposable projections of the Credential Store.

Responsibilities:
- Pluggable key/value backends (in-process, Redis).
- Configuration and permission caches with scoped invalidation.
- The coordinator that every admin-side mutation routes through.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# A miss is always safe: every entry can be recomputed from the store.
