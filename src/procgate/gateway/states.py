"""
procgate.gateway.states

Pipeline states. `responded` and `failed` are the only terminal states.
"""

from __future__ import annotations

import enum


class PipelineState(enum.StrEnum):
    received = "RECEIVED"
    authenticated = "AUTHENTICATED"
    authorized = "AUTHORIZED"
    admitted = "ADMITTED"
    configuration_resolved = "CONFIGURATION_RESOLVED"
    executed = "EXECUTED"
    responded = "RESPONDED"
    failed = "FAILED"


# Forward order; any state may instead move to `failed`.
HAPPY_PATH: tuple[PipelineState, ...] = (
    PipelineState.received,
    PipelineState.authenticated,
    PipelineState.authorized,
    PipelineState.admitted,
    PipelineState.configuration_resolved,
    PipelineState.executed,
    PipelineState.responded,
)
