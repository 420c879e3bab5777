"""
Custom exceptions for the Worklite application.
"""


class WorkliteError(Exception):
    """Base exception for all Worklite-related errors."""
    pass


class ValidationError(WorkliteError):
    """Raised when imported or edited data does not conform to the schema."""
    pass


class NotFoundError(WorkliteError):
    """Raised when a requested project or work item is not found."""
    pass


class InvalidOperationError(WorkliteError):
    """Raised when an operation is not allowed in the current state."""
    pass


class StorageError(WorkliteError):
    """Raised when the local store cannot be opened or read."""
    pass


class TransactionError(StorageError):
    """Raised when a transaction aborts. Nothing from it was committed."""
    pass


class ConflictError(TransactionError):
    """Raised when a write was based on a stale project version."""

    def __init__(self, project_id: str, expected: int, actual: int):
        super().__init__(
            f"Project '{project_id}' is at version {actual}, expected {expected}"
        )
        self.project_id = project_id
        self.expected = expected
        self.actual = actual


class MigrationError(WorkliteError):
    """Raised when legacy data cannot be migrated. Legacy data is kept."""
    pass


class ConfigurationError(WorkliteError):
    """Raised when there's a configuration or setup issue."""
    pass
