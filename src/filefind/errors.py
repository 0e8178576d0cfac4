"""
Exception hierarchy for filefind.

Configuration problems are raised at setup time. Traversal faults other
than a missing root are absorbed by the walker and never raised.
"""


class FindError(Exception):
    """Base class for all filefind errors."""
    pass


class ConfigurationError(FindError):
    """Raised when rules or configuration cannot be parsed or validated."""
    pass


class FatalTraversalError(FindError):
    """Raised when a root path does not exist; aborts the whole run."""

    def __init__(self, path: str, message: str = ""):
        self.path = path
        super().__init__(message or f"Root path does not exist: {path}")
