"""
Pantry Locator Integrations Package.

Mapping provider and device geolocation adapters.
"""

from locator.integrations.maps import (
    MappingProvider,
    GoogleMapsProvider,
    parse_address_components,
)
from locator.integrations.geolocation import (
    GeolocationOptions,
    DeviceGeolocation,
    ClientReportedGeolocation,
    UnsupportedGeolocation,
)

__all__ = [
    "MappingProvider",
    "GoogleMapsProvider",
    "parse_address_components",
    "GeolocationOptions",
    "DeviceGeolocation",
    "ClientReportedGeolocation",
    "UnsupportedGeolocation",
]
