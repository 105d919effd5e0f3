"""
Description: Exception types raised by the primegen package.
Author: primegen maintainers
Date: 18-October-2026

Notes:
    - InvalidArgument is also a ValueError, so callers that already catch ValueError keep working.
"""


class PrimeGenError(Exception):
    """
    Base class for every error raised by primegen.
    """
    pass


class InvalidArgument(PrimeGenError, ValueError):
    """
    Exception raised when an argument is out of range (negative candidate, zero bit length, max <= min, ...).

    Raised before any randomness is consumed or any worker is spawned.
    """
    pass


class WorkerFailure(PrimeGenError, RuntimeError):
    """
    Exception raised when a worker process crashes or its channel breaks during a prime search.

    The whole search is aborted and every remaining worker is cancelled before this is raised.
    """
    pass
