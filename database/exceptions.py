"""Database exception types."""


class DatabaseError(Exception):
    """Base exception for document store operations."""
    pass


class DatabaseSchemaError(DatabaseError):
    """Raised when schema loading or migration fails."""
    pass


class DocumentNotFoundError(DatabaseError):
    """Raised when updating a document that does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Document {path} not found")


class InvalidPathError(DatabaseError):
    """Raised when a document or collection path is malformed."""
    pass
