"""Utility functions and helpers."""

from pathwise.utils.responses import csv_file, error, not_found, success, validation_error
from pathwise.utils.exceptions import (
    ConfigurationError,
    ConflictError,
    DeliveryError,
    NotFoundError,
    PathwiseError,
    ValidationError,
)

__all__ = [
    # Response helpers
    "csv_file",
    "error",
    "not_found",
    "success",
    "validation_error",
    # Exceptions
    "ConfigurationError",
    "ConflictError",
    "DeliveryError",
    "NotFoundError",
    "PathwiseError",
    "ValidationError",
]
