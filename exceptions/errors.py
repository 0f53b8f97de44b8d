"""
Custom exception classes for the application.

Every error the command pipeline produces locally (unresolved names,
undetermined criteria, empty matches) and every failure of an external
collaborator (classifier, MCP backend) is an AppError, so the route layer
can turn it into a response without knowing the specifics.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        message: str,
        code: str = "NOT_FOUND",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=404,
            details=details
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# RESOLUTION ERRORS
# ===================

class EntityNotFoundError(NotFoundError):
    """A name or id resolved to no product in the catalog."""

    def __init__(self, reference: str):
        super().__init__(
            code="PRODUCT_NOT_FOUND",
            message=f"Product '{reference}' not found",
            details={"reference": reference}
        )


class NoMatchError(NotFoundError):
    """Filter criteria were well-formed but matched zero products."""

    def __init__(self, criteria: dict):
        super().__init__(
            code="NO_MATCHING_PRODUCTS",
            message=f"No products found matching criteria: {criteria}",
            details={"criteria": criteria}
        )


class CriteriaUndeterminedError(ValidationError):
    """The command text did not yield the values an operation needs."""

    def __init__(self, message: str, missing: list[str], command: str):
        super().__init__(
            code="CRITERIA_UNDETERMINED",
            message=message,
            details={"missing": missing, "command": command}
        )


# ===================
# TOOL ERRORS
# ===================

class UnsupportedToolError(ValidationError):
    """Tool name is not one of the known backend operations."""

    def __init__(self, tool: str, supported: list[str]):
        super().__init__(
            code="UNSUPPORTED_TOOL",
            message=f"Unsupported tool: {tool}",
            details={"tool": tool, "supported": supported}
        )


class InvalidToolParametersError(ValidationError):
    """Tool invocation is missing parameters its operation requires."""

    def __init__(self, tool: str, missing: list[str]):
        super().__init__(
            code="INVALID_TOOL_PARAMETERS",
            message=f"Tool '{tool}' is missing required parameters: {', '.join(missing)}",
            details={"tool": tool, "missing": missing}
        )


# ===================
# COLLABORATOR ERRORS
# ===================

class ClassifierFormatError(ExternalServiceError):
    """Classifier output could not be parsed as a tool invocation."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(
            service="classifier",
            code="CLASSIFIER_FORMAT_ERROR",
            message=message,
            details={"raw_output": raw_output[:500]}
        )


class BackendError(ExternalServiceError):
    """MCP backend returned an error envelope or could not be reached."""

    def __init__(
        self,
        message: str,
        tool: Optional[str] = None,
        data: Any = None
    ):
        super().__init__(
            service="backend",
            code="BACKEND_ERROR",
            message=message,
            details={"tool": tool, "data": data}
        )
