"""
Roleplay Engine Errors

Every failure the engine raises resolves back to a reachable session state
(the session is left untouched, returned to IN_STEP, or reset to IDLE).
"""

from typing import Optional


class RoleplayError(Exception):
    """Base class for all roleplay engine errors."""


class ValidationError(RoleplayError):
    """Invalid input to an engine operation (e.g. an empty turn)."""


class ScenarioNotFoundError(RoleplayError):
    """Requested scenario id is not in the catalog."""

    def __init__(self, scenario_id: str):
        super().__init__(f"Scenario not found: {scenario_id}")
        self.scenario_id = scenario_id


class CatalogError(RoleplayError):
    """Scenario definition violates the catalog invariants."""


class InvalidTransitionError(RoleplayError):
    """Operation is not legal from the session's current lifecycle state."""

    def __init__(self, operation: str, state):
        super().__init__(f"Cannot {operation} while session is {state.value}")
        self.operation = operation
        self.state = state


class StreamError(RoleplayError):
    """
    Transport or collaborator failure while a turn was streaming.

    Recoverable: the session returns to IN_STEP so the user can retry.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class GradingContractError(StreamError):
    """Collaborator sent a malformed event or step_result."""
