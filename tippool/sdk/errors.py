"""Error taxonomy shared by the tip pool SDK.

Every error raised on purpose by the SDK derives from TipPoolError so the
CLI and MCP layers can turn it into a specific message for the user.
"""

from typing import List, Union


class TipPoolError(Exception):
    """Base class for tip pool errors."""
    pass


class ValidationError(TipPoolError):
    """Raised when an input is rejected at the boundary (nothing was changed)."""
    def __init__(self, errors: Union[str, List[str]]):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = errors
        super().__init__("; ".join(errors))


class StateConflictError(TipPoolError):
    """Raised when an operation is not allowed in the current period/payout state."""
    pass


class PersistenceError(TipPoolError):
    """Raised when the store fails to load or save team data."""
    pass


class ConfigurationError(TipPoolError):
    """Raised when stored settings are malformed."""
    pass
