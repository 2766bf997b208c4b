"""
Common exceptions for the document mapper.

Version: 1.0
"""

from typing import Dict, Optional, Any


class BaseMapperException(Exception):
    """Base exception class for mapper errors."""
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class DateParseException(BaseMapperException, ValueError):
    """Raised when a value cannot be interpreted as a date."""
    def __init__(self, value: Any, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Unable to parse date value: {value!r}",
            details={"value": repr(value), **(details or {})}
        )
        self.value = value


class RelationNotFoundException(BaseMapperException, KeyError):
    """Raised when a relation name is not declared on a model."""
    def __init__(self, model: str, relation: str):
        super().__init__(
            message=f"Call to undefined relationship [{relation}] on model [{model}]",
            details={"model": model, "relation": relation}
        )
        self.model = model
        self.relation = relation


class ModelNotFoundException(BaseMapperException, LookupError):
    """Raised when a model name cannot be resolved from the registry."""
    def __init__(self, name: str):
        super().__init__(
            message=f"No model registered under the name [{name}]",
            details={"name": name}
        )
        self.name = name


class InvalidAttributeTypeException(BaseMapperException, TypeError):
    """Raised when an array operation targets a non-array attribute."""
    def __init__(self, key: str, value: Any):
        super().__init__(
            message=f"Attribute [{key}] is not an array",
            details={"key": key, "type": type(value).__name__}
        )
        self.key = key


def describe_exception(exc: Exception) -> Dict[str, Any]:
    """
    Build a loggable summary of an exception.

    Args:
        exc: The exception to describe

    Returns:
        Dict containing error details
    """
    if isinstance(exc, BaseMapperException):
        return {
            "error_type": type(exc).__name__,
            "detail": exc.message,
            "error_details": exc.details
        }
    return {
        "error_type": type(exc).__name__,
        "detail": str(exc),
        "error_details": {}
    }
