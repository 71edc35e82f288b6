"""Controller phase definitions — the finite state machine states and transitions."""

from __future__ import annotations

from enum import Enum


class Phase(str, Enum):
    """All valid controller phases for one extraction request."""

    PENDING = "PENDING"
    EXTRACTING = "EXTRACTING"
    NEEDS_RECONCILIATION = "NEEDS_RECONCILIATION"
    RECONCILING = "RECONCILING"
    REPAIRED = "REPAIRED"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


# Valid phase transitions. Each key maps to a set of phases it can transition to.
VALID_TRANSITIONS: dict[Phase, set[Phase]] = {
    Phase.PENDING: {Phase.EXTRACTING, Phase.FAILED},
    Phase.EXTRACTING: {Phase.SUCCEEDED, Phase.NEEDS_RECONCILIATION, Phase.FAILED},
    Phase.NEEDS_RECONCILIATION: {Phase.RECONCILING, Phase.FAILED},
    Phase.RECONCILING: {Phase.REPAIRED, Phase.FAILED},
    # A repair is only trusted once extraction ran against it again
    Phase.REPAIRED: {Phase.EXTRACTING, Phase.FAILED},
    Phase.SUCCEEDED: set(),  # terminal
    Phase.FAILED: set(),  # terminal
}

TERMINAL_PHASES = {Phase.SUCCEEDED, Phase.FAILED}
