"""Pantry Locator - Utilities Package."""

from locator.utils.errors import (
    LocatorException,
    ValidationError,
    NotFoundError,
    ConflictError,
    ProviderError,
    CapabilityError,
    GeolocationFailure,
)

__all__ = [
    "LocatorException",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ProviderError",
    "CapabilityError",
    "GeolocationFailure",
]
