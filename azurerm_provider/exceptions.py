"""
Custom Exception Hierarchy for the AzureRM provider

Every error raised by the provider itself derives from ProviderError, which
carries an error code, a context dictionary, the underlying cause and an
optional recovery suggestion. Errors raised by the Azure SDK during create,
update and delete are deliberately not wrapped: they reach the caller
unmodified.
"""

from typing import Any, Dict, Optional

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError


class ProviderError(Exception):
    """
    Base exception class for all provider errors.

    Provides structured error information including context, error codes,
    and optional recovery suggestions.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recovery_suggestion: Optional[str] = None,
    ) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context
            cause: Optional underlying exception that caused this error
            recovery_suggestion: Optional suggestion for error recovery
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.recovery_suggestion = recovery_suggestion

    def __str__(self) -> str:
        """Return a formatted error message with context."""
        result = self.message
        if self.error_code:
            result = f"[{self.error_code}] {result}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            result += f" (context: {context_str})"
        if self.cause:
            result += f" (caused by: {self.cause})"
        if self.recovery_suggestion:
            result += f" (suggestion: {self.recovery_suggestion})"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
            "recovery_suggestion": self.recovery_suggestion,
        }


class ResourceIdFormatError(ProviderError):
    """Raised when an Azure resource ID cannot be parsed."""

    def __init__(
        self, message: str, resource_id: Optional[str] = None, **kwargs: Any
    ) -> None:
        context = kwargs.get("context", {})
        if resource_id is not None:
            context["resource_id"] = resource_id
        kwargs["context"] = context
        kwargs.setdefault("error_code", "INVALID_RESOURCE_ID")
        super().__init__(message, **kwargs)


# Resource lifecycle exceptions
class ResourceError(ProviderError):
    """Base class for errors raised while managing a single resource."""

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        resource_group: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if name:
            context["name"] = name
        if resource_group:
            context["resource_group"] = resource_group
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class ResourceReadError(ResourceError):
    """Raised when a Read request fails for a reason other than not-found."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("error_code", "RESOURCE_READ_FAILED")
        super().__init__(message, **kwargs)


class MissingResourceIdError(ResourceError):
    """Raised when a successful create or update yields no resource ID."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("error_code", "MISSING_RESOURCE_ID")
        super().__init__(message, **kwargs)


class InconsistentResultError(ResourceError):
    """Raised when a resource disappears between apply and the confirming read."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("error_code", "INCONSISTENT_RESULT")
        kwargs.setdefault(
            "recovery_suggestion",
            "Run 'refresh' and apply again once the remote object is visible",
        )
        super().__init__(message, **kwargs)


class OperationTimeoutError(ResourceError):
    """Raised when a long-running ARM operation exceeds its timeout."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        timeout_value: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if operation:
            context["operation"] = operation
        if timeout_value:
            context["timeout"] = f"{timeout_value}s"
        kwargs["context"] = context
        kwargs.setdefault("error_code", "OPERATION_TIMEOUT")
        kwargs.setdefault(
            "recovery_suggestion",
            "Raise the value in the resource's 'timeouts' block or the ARM_TIMEOUT_* variables",
        )
        super().__init__(message, **kwargs)
        self.operation = operation
        self.timeout_value = timeout_value


# Schema-related exceptions
class SchemaError(ProviderError):
    """Base class for schema errors."""

    pass


class SchemaValidationError(SchemaError):
    """Raised when a resource configuration does not match its schema."""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        validation_errors: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if resource_type:
            context["resource_type"] = resource_type
        if validation_errors:
            context["validation_errors"] = validation_errors
        kwargs["context"] = context
        kwargs.setdefault("error_code", "SCHEMA_VALIDATION_FAILED")
        super().__init__(message, **kwargs)
        self.validation_errors = validation_errors or []


class UnknownResourceTypeError(SchemaError):
    """Raised when no handler is registered for a resource type."""

    def __init__(
        self, message: str, resource_type: Optional[str] = None, **kwargs: Any
    ) -> None:
        context = kwargs.get("context", {})
        if resource_type:
            context["resource_type"] = resource_type
        kwargs["context"] = context
        kwargs.setdefault("error_code", "UNKNOWN_RESOURCE_TYPE")
        kwargs.setdefault(
            "recovery_suggestion",
            "Run 'azurerm-provider resource-types' to list supported types",
        )
        super().__init__(message, **kwargs)


# Configuration-related exceptions
class ConfigurationError(ProviderError):
    """Base class for configuration-related errors."""

    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration validation fails."""

    def __init__(
        self, message: str, config_section: Optional[str] = None, **kwargs: Any
    ) -> None:
        context = kwargs.get("context", {})
        if config_section:
            context["config_section"] = config_section
        kwargs["context"] = context
        kwargs.setdefault("error_code", "INVALID_CONFIG")
        super().__init__(message, **kwargs)


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration is missing."""

    def __init__(
        self, message: str, missing_keys: Optional[list[str]] = None, **kwargs: Any
    ) -> None:
        context = kwargs.get("context", {})
        if missing_keys:
            context["missing_keys"] = missing_keys
        kwargs["context"] = context
        kwargs.setdefault("error_code", "MISSING_CONFIG")
        kwargs.setdefault(
            "recovery_suggestion",
            f"Set required configuration: {', '.join(missing_keys)}"
            if missing_keys
            else "Set required configuration",
        )
        super().__init__(message, **kwargs)


class InterpolationError(ConfigurationError):
    """Raised when a ${type.label.field} reference cannot be resolved."""

    def __init__(
        self,
        message: str,
        reference: Optional[str] = None,
        address: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if reference:
            context["reference"] = reference
        if address:
            context["address"] = address
        kwargs["context"] = context
        kwargs.setdefault("error_code", "INTERPOLATION_FAILED")
        super().__init__(message, **kwargs)


class StateError(ProviderError):
    """Raised when the persisted state cannot be read or updated."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if path:
            context["path"] = path
        kwargs["context"] = context
        kwargs.setdefault("error_code", "STATE_ERROR")
        super().__init__(message, **kwargs)


def is_not_found(exc: BaseException) -> bool:
    """
    Check whether an Azure SDK exception means the remote object does not exist.

    Args:
        exc: Exception raised by an Azure SDK call

    Returns:
        True for ResourceNotFoundError and for HTTP 404 responses
    """
    if isinstance(exc, ResourceNotFoundError):
        return True
    if isinstance(exc, HttpResponseError) and exc.status_code == 404:
        return True
    return False
