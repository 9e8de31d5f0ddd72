# src/e2engine/errors.py


class E2EngineError(Exception):
    """Base class for engine errors."""


class UnsupportedCombination(E2EngineError, LookupError):
    """No parameter entry exists for a (route, ester) pair."""

    def __init__(self, route: str, ester: str):
        self.route = route
        self.ester = ester
        super().__init__(f"No kinetic parameters for route '{route}' with ester '{ester}'.")


class EmptyInput(E2EngineError, ValueError):
    """Raised when a caller asks for an empty event list to be treated as an error."""


class ParameterTableError(E2EngineError, ValueError):
    """A parameter table is malformed or holds out-of-range values."""
