"""
Pantry Locator - Location Schemas.

Pydantic schemas for the active user location and geocoding results.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from locator.schemas.store import Coordinates
from locator.utils.errors import GeolocationFailure


PLACEHOLDER_CITY = "Your Location"


class LocationSource(str, Enum):
    """Where the active location came from."""
    MANUAL = "manual"
    GEOLOCATION = "geolocation"
    PROFILE = "profile"


class ResolverState(str, Enum):
    """LocationResolver states."""
    UNINITIALIZED = "uninitialized"
    RESOLVED = "resolved"
    ERROR = "error"


class UserLocation(BaseModel):
    """
    The single active location of a session.

    Attributes:
        city: City name, or the placeholder label for coordinates-only fixes.
        state: State/region code, empty when unknown.
        latitude: Latitude, absent for manually chosen cities.
        longitude: Longitude, absent for manually chosen cities.
        source: manual, geolocation or profile.
        resolved_at: When this location replaced the previous one.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "city": "Austin",
                "state": "TX",
                "latitude": 30.2672,
                "longitude": -97.7431,
                "source": "geolocation"
            }
        }
    )

    city: str
    state: str = ""
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    source: LocationSource
    resolved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    @property
    def display(self) -> str:
        """Display label: "City, ST", or the city alone when state is unknown."""
        if self.state:
            return f"{self.city}, {self.state}"
        return self.city


class ProfileLocation(BaseModel):
    """Location fields read from a saved user profile."""
    preferred_city: Optional[str] = None
    preferred_state: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class GeocodeResult(BaseModel):
    """Best-effort city/state for a coordinate."""
    city: Optional[str] = None
    state: Optional[str] = None


class LocationResponse(BaseModel):
    """Current resolver snapshot."""
    state: ResolverState
    location: Optional[UserLocation] = None
    display: str = ""
    error: Optional[GeolocationFailure] = None


class CitySelectionRequest(BaseModel):
    """Manual city pick."""
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)


class HydrateRequest(BaseModel):
    """Initial session hydration payload."""
    profile: Optional[ProfileLocation] = None


class GeolocateRequest(BaseModel):
    """
    Position (or failure) reported by the client device.

    Exactly one of coordinates or error is expected; a request with neither
    is treated as an unsupported capability.
    """
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    error: Optional[GeolocationFailure] = None
    position_age_seconds: Optional[float] = Field(None, ge=0)
    issued_at: Optional[datetime] = Field(None, description="When the client started the request")
