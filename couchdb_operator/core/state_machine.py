"""
Bootstrap State Machine for CouchDB clusters

This module defines the states a cluster passes through while its member
nodes are joined into one ring, and the transitions allowed between them.

States:
- UNKNOWN: Nothing has been observed yet for this attempt
- UNCLUSTERED: The cluster resource exists and is not initialized
- READY_TO_JOIN: Every desired member exists and reports ready
- JOINING: add_node calls are being issued against the seed
- INITIALIZED: The initialized flag was written (terminal)

Usage:
    >>> from couchdb_operator.core.state_machine import BootstrapState, BootstrapStateMachine
    >>>
    >>> BootstrapStateMachine.can_transition(
    ...     BootstrapState.READY_TO_JOIN,
    ...     BootstrapState.JOINING
    ... )
    True
"""

from enum import Enum
from typing import Dict, Optional, Set

import structlog

logger = structlog.get_logger(__name__)


class BootstrapState(str, Enum):
    """Cluster bootstrap states"""
    UNKNOWN = "unknown"
    UNCLUSTERED = "unclustered"
    READY_TO_JOIN = "ready_to_join"
    JOINING = "joining"
    INITIALIZED = "initialized"


class BootstrapStateMachine:
    """
    State machine for the one-shot cluster bootstrap.

    There is no reverse transition out of INITIALIZED; only an external reset
    of the annotation starts a new bootstrap.
    """

    TRANSITIONS: Dict[BootstrapState, Set[BootstrapState]] = {
        BootstrapState.UNKNOWN: {
            BootstrapState.UNCLUSTERED,    # Resource read, not yet initialized
            BootstrapState.INITIALIZED,    # Resource read, already initialized
        },
        BootstrapState.UNCLUSTERED: {
            BootstrapState.READY_TO_JOIN,  # Full membership, all ready
        },
        BootstrapState.READY_TO_JOIN: {
            BootstrapState.JOINING,        # Credentials resolved
        },
        BootstrapState.JOINING: {
            BootstrapState.INITIALIZED,    # Flag committed regardless of join results
        },
        BootstrapState.INITIALIZED: set(),  # Terminal state, no transitions
    }

    @classmethod
    def can_transition(
        cls,
        from_state: BootstrapState,
        to_state: BootstrapState
    ) -> bool:
        """
        Check if state transition is valid.

        Example:
            >>> BootstrapStateMachine.can_transition(
            ...     BootstrapState.INITIALIZED,
            ...     BootstrapState.UNCLUSTERED
            ... )
            False
        """
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def validate_transition(
        cls,
        from_state: BootstrapState,
        to_state: BootstrapState,
        cluster: Optional[str] = None
    ) -> None:
        """
        Validate state transition and raise exception if invalid.

        Raises:
            ValueError: If transition is not allowed
        """
        if not cls.can_transition(from_state, to_state):
            error_msg = (
                f"Invalid bootstrap transition from {from_state.value} "
                f"to {to_state.value}"
            )
            if cluster:
                error_msg += f" for cluster {cluster}"

            logger.error(
                "invalid_bootstrap_transition",
                cluster=cluster,
                from_state=from_state.value,
                to_state=to_state.value,
                allowed_states=[s.value for s in cls.TRANSITIONS.get(from_state, set())]
            )
            raise ValueError(error_msg)

    @classmethod
    def is_terminal(cls, state: BootstrapState) -> bool:
        return not cls.TRANSITIONS.get(state)


class BootstrapAttempt:
    """
    Tracks the state of a single bootstrap attempt for one cluster.

    An attempt starts at UNKNOWN and only moves forward along the allowed
    transitions.
    """

    def __init__(self, cluster: str):
        self.cluster = cluster
        self.state = BootstrapState.UNKNOWN

    def advance(self, to_state: BootstrapState) -> None:
        BootstrapStateMachine.validate_transition(self.state, to_state, self.cluster)
        logger.debug(
            "bootstrap_state_changed",
            cluster=self.cluster,
            from_state=self.state.value,
            to_state=to_state.value,
        )
        self.state = to_state
