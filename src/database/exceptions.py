"""Custom exceptions for storage operations."""


class DatabaseError(Exception):
    """Base exception for storage errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Database is not configured or the connection failed."""
    pass


class DatabaseConstraintError(DatabaseError):
    """Uniqueness or foreign key violation (e.g. a second instance for the same team and date)."""
    pass


class DatabaseOperationError(DatabaseError):
    """A write failed for a reason other than a constraint violation."""
    pass
