"""Database exceptions."""

class DatabaseError(Exception):
    """Base exception for database errors."""
    pass

class DatabaseSchemaError(DatabaseError):
    """Raised when the schema cannot be loaded or applied."""
    pass

class DatabaseTimeoutError(DatabaseError):
    """Raised when a database call does not finish within remote_timeout."""
    pass
