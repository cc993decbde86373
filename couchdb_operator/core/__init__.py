"""
Core building blocks of the operator.

- Bootstrap state machine for the one-shot cluster join
- Readiness cell for the health probe

Import directly from submodules:
    from couchdb_operator.core.state_machine import BootstrapState, BootstrapStateMachine
    from couchdb_operator.core.readiness import readiness
"""
