class PacerError(Exception):
    """Base class for errors raised by the pacer core."""


class NotFoundError(PacerError):
    """A referenced record does not exist at lookup time."""

    def __init__(self, kind: str, id: int):
        super().__init__(f"{kind} {id} not found")
        self.kind = kind
        self.id = id


class StorageError(PacerError):
    """A persistence operation failed. The driver error is chained as __cause__."""
