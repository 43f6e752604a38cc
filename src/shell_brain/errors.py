"""Exception types raised by shell-brain."""


class BrainError(Exception):
    """Base class for shell-brain errors."""


class StoreUnavailableError(BrainError):
    """The database file is missing, corrupt or cannot be written."""


class TranscriptError(BrainError):
    """A transcript file could not be read or parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class MalformedCommandError(BrainError):
    """A single command record cannot be turned into a row."""
