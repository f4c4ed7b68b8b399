"""Core exceptions for SafeSQL."""

from typing import Any, Dict, Optional


class SafeSQLError(Exception):
    """Base exception for all SafeSQL errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(SafeSQLError):
    """Raised when there's an error in configuration parsing or validation."""
    pass


class TemplateError(SafeSQLError):
    """Raised when a template and its arguments cannot be compiled."""

    def __init__(
        self,
        message: str,
        template: Optional[str] = None,
        placeholder: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.template = template
        self.placeholder = placeholder


class ArityError(TemplateError):
    """Raised when the number of placeholders differs from the number of arguments."""

    def __init__(self, template: str, placeholders: int, arguments: int):
        super().__init__(
            f"Number of args ({arguments}) doesn't match number of placeholders "
            f"({placeholders}) in [{template}]",
            template=template,
            details={'placeholders': placeholders, 'arguments': arguments},
        )
        self.placeholders = placeholders
        self.arguments = arguments


class EmptyIdentifierError(TemplateError):
    """Raised when an identifier placeholder receives an empty name."""
    pass


class EmptyPayloadError(TemplateError):
    """Raised when a SET placeholder receives an empty mapping."""
    pass


class PlaceholderTypeError(TemplateError, TypeError):
    """Raised when a placeholder receives a value of the wrong type."""
    pass


class DatabaseError(SafeSQLError):
    """Raised when there's an error connecting to or querying a database."""

    def __init__(
        self,
        message: str,
        database_type: Optional[str] = None,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.database_type = database_type
        self.code = code


class ConnectError(DatabaseError):
    """Raised when every connection attempt has been exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        database_type: Optional[str] = None,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, database_type, code, details)
        self.attempts = attempts


class QueryError(DatabaseError):
    """Raised when a statement fails, carrying the database's error text."""

    def __init__(
        self,
        message: str,
        sql: Optional[str] = None,
        database_type: Optional[str] = None,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, database_type, code, details)
        self.sql = sql


class ClientError(SafeSQLError):
    """Raised by database clients with the driver's native error code and text."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message, {'code': code})
        self.code = code
