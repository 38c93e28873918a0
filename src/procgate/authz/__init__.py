"""
procgate.authz

Role-based authorization of callers against gateway resources.
"""

# Package marker.
