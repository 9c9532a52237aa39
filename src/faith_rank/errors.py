"""Exception types raised by faith-rank."""


class FaithRankError(Exception):
    """Base exception for all engine failures."""

    def __init__(self, message: str = "faith-rank error"):
        self.message = message
        super().__init__(self.message)


class InvalidArgument(FaithRankError, ValueError):
    """Raised for a negative delta, a negative magnitude or a malformed action."""

    def __init__(self, message: str = "Invalid argument"):
        super().__init__(message)


class NotFoundError(FaithRankError, LookupError):
    """Raised when a catalog, challenge or task id is unknown."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class InvariantViolation(FaithRankError, RuntimeError):
    """Raised when catalog data breaks a structural invariant.

    Fatal: a level table that fails to cover a point total means the catalog
    is corrupt, and the host should refuse to start.
    """

    def __init__(self, message: str = "Invariant violated"):
        super().__init__(message)
