"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,

    # Resolution
    EntityNotFoundError,
    NoMatchError,
    CriteriaUndeterminedError,

    # Tools
    UnsupportedToolError,
    InvalidToolParametersError,

    # Collaborators
    ClassifierFormatError,
    BackendError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",

    # Resolution
    "EntityNotFoundError",
    "NoMatchError",
    "CriteriaUndeterminedError",

    # Tools
    "UnsupportedToolError",
    "InvalidToolParametersError",

    # Collaborators
    "ClassifierFormatError",
    "BackendError",
]
