"""
Exception Hierarchy
===================

All errors raised by svystats inherit from SvyStatsError, and each one also
inherits from the closest builtin exception so callers may catch either.

Fatal errors (raised immediately, no partial result):
    InputError             - wrong argument value, missing column
    TypeMismatchError      - argument is not a table or decomposition
    MissingDependencyError - external rotation/posterior routine unavailable
    DivisionByZeroError    - cluster whose design weights sum to zero

Non-fatal:
    UnsupportedModelWarning - goodness-of-fit requested for a model kind
                              without a formula; the call returns None
"""


class SvyStatsError(Exception):
    """Base exception for all svystats errors."""
    pass


class InputError(SvyStatsError, ValueError):
    """Argument has the wrong value or refers to a missing column."""
    pass


class TypeMismatchError(SvyStatsError, TypeError):
    """Argument is neither a data frame nor a supported decomposition."""
    pass


class MissingDependencyError(SvyStatsError, ImportError):
    """
    A required external routine is not available.

    Attributes:
        capability: Name of the missing capability (e.g. 'simplimax-rotation')
    """

    def __init__(self, message: str, capability: str = None):
        super().__init__(message)
        self.capability = capability


class DivisionByZeroError(SvyStatsError, ZeroDivisionError):
    """
    Design weights of at least one cluster sum to zero.

    Attributes:
        clusters: Cluster ids with a zero weight total
    """

    def __init__(self, message: str, clusters: list = None):
        super().__init__(message)
        self.clusters = clusters or []


class UnsupportedModelWarning(UserWarning):
    """No goodness-of-fit formula is defined for the given model."""
    pass
