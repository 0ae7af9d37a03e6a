class PasteError(Exception):
    """Base class for paste-related errors."""


class InvalidPasteParameters(PasteError):
    """Raised when creating a paste with invalid parameters."""


class PasteStorageError(PasteError):
    """Raised when the backing store cannot complete an operation."""


class PasteContentionError(PasteStorageError):
    """Raised when a view could not be recorded because of sustained write contention."""
