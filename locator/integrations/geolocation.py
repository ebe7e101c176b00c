"""
Pantry Locator - Device Geolocation Adapters.

The device capability is owned by the client (browser/OS). The server sees
either the position the client obtained or the failure it hit, and wraps
that in the same interface a native capability would expose.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from locator.schemas.store import Coordinates
from locator.utils.errors import CapabilityError, GeolocationFailure

logger = logging.getLogger(__name__)


@dataclass
class GeolocationOptions:
    """Options passed to the device capability."""
    timeout_seconds: float = 10.0
    maximum_age_seconds: float = 300.0
    high_accuracy: bool = True


class DeviceGeolocation(ABC):
    """Base class for device geolocation capabilities."""

    @abstractmethod
    async def get_current_position(self, options: GeolocationOptions) -> Coordinates:
        """
        Obtain the current device position.

        Raises:
            CapabilityError: permission denied, unavailable, timeout or unsupported.
        """
        pass


class ClientReportedGeolocation(DeviceGeolocation):
    """
    Position (or failure) reported by a browser client.

    A position older than the maximum cached-position age is treated as
    unavailable.
    """

    def __init__(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        error: Optional[GeolocationFailure] = None,
        position_age_seconds: Optional[float] = None
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.error = error
        self.position_age_seconds = position_age_seconds

    async def get_current_position(self, options: GeolocationOptions) -> Coordinates:
        if self.error is not None:
            raise CapabilityError(self.error)
        if self.latitude is None or self.longitude is None:
            raise CapabilityError(
                GeolocationFailure.UNSUPPORTED,
                detail="Client reported neither a position nor an error",
            )
        if (
            self.position_age_seconds is not None
            and self.position_age_seconds > options.maximum_age_seconds
        ):
            logger.info(
                f"Discarding cached position aged {self.position_age_seconds}s "
                f"(max {options.maximum_age_seconds}s)"
            )
            raise CapabilityError(
                GeolocationFailure.POSITION_UNAVAILABLE,
                detail="Cached position is too old",
            )
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class UnsupportedGeolocation(DeviceGeolocation):
    """Capability for callers without any geolocation support."""

    async def get_current_position(self, options: GeolocationOptions) -> Coordinates:
        raise CapabilityError(GeolocationFailure.UNSUPPORTED)
