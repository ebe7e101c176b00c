"""
Pantry Locator - Custom Exception Classes.

Exception hierarchy for store identity and location error handling.
"""

from enum import Enum
from typing import Optional


class LocatorException(Exception):
    """
    Base exception class for the locator service.

    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code for the error.
        detail: Additional error details.
    """

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        detail: Optional[str] = None
    ):
        """
        Initialize LocatorException.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code (default 500).
            detail: Additional error details.
        """
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        super().__init__(self.message)


class ValidationError(LocatorException):
    """
    Exception raised for malformed store candidates.

    Used when:
    - Missing store name
    - Physical store without address and without coordinates
    - Half-specified coordinates
    """

    def __init__(
        self,
        message: str = "Validation error",
        detail: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=400,
            detail=detail
        )


class NotFoundError(LocatorException):
    """
    Exception raised when a store or chain id is unknown.

    Callers of the chain grouping helpers treat this as an empty result.
    """

    def __init__(
        self,
        message: str = "Resource not found",
        detail: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=404,
            detail=detail
        )


class ConflictError(LocatorException):
    """
    Exception raised when an insert violates a store uniqueness index.

    Used when:
    - Same external place id already stored
    - Same exact-match key (name + address, or name + region) already stored
    """

    def __init__(
        self,
        message: str = "Resource conflict",
        detail: Optional[str] = None,
        key: Optional[str] = None
    ):
        """
        Initialize ConflictError.

        Args:
            message: Error message.
            detail: Additional details.
            key: The uniqueness key that collided, when known.
        """
        super().__init__(
            message=message,
            status_code=409,
            detail=detail
        )
        self.key = key


class ProviderError(LocatorException):
    """
    Exception raised when the mapping provider fails.

    Used when:
    - Reverse geocoding request fails
    - Place autocomplete or details lookup fails
    - Provider is not configured
    """

    def __init__(
        self,
        message: str = "Mapping provider error",
        detail: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=502,
            detail=detail
        )


class GeolocationFailure(str, Enum):
    """Reasons a device position could not be obtained."""
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


_FAILURE_STATUS = {
    GeolocationFailure.PERMISSION_DENIED: 403,
    GeolocationFailure.UNSUPPORTED: 403,
    GeolocationFailure.POSITION_UNAVAILABLE: 503,
    GeolocationFailure.TIMEOUT: 504,
}

_FAILURE_MESSAGES = {
    GeolocationFailure.PERMISSION_DENIED: "Location permission denied",
    GeolocationFailure.POSITION_UNAVAILABLE: "Location unavailable",
    GeolocationFailure.TIMEOUT: "Location request timed out",
    GeolocationFailure.UNSUPPORTED: "Geolocation is not supported by this device",
}


class CapabilityError(LocatorException):
    """
    Exception raised when device geolocation cannot be used.

    Surfaced to the user as-is; never retried automatically.

    Attributes:
        reason: GeolocationFailure describing what went wrong.
    """

    def __init__(
        self,
        reason: GeolocationFailure,
        detail: Optional[str] = None
    ):
        """
        Initialize CapabilityError.

        Args:
            reason: Failure reason reported by the geolocation capability.
            detail: Additional details.
        """
        self.reason = GeolocationFailure(reason)
        super().__init__(
            message=_FAILURE_MESSAGES[self.reason],
            status_code=_FAILURE_STATUS[self.reason],
            detail=detail
        )
