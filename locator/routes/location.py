# locator/routes/location.py
"""
Pantry Locator API - Location Routes.

The active location of a session, keyed by the X-Session-Id header.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
import logging

from locator.dependencies import get_location_resolver, get_mapping_provider
from locator.integrations.geolocation import ClientReportedGeolocation
from locator.integrations.maps import MappingProvider
from locator.middleware.rate_limit import limiter, place_lookup_limit
from locator.schemas.location import (
    CitySelectionRequest,
    GeocodeResult,
    GeolocateRequest,
    HydrateRequest,
    LocationResponse,
)
from locator.services.location_resolver import LocationResolver
from locator.utils.errors import CapabilityError, LocatorException

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=LocationResponse)
async def get_location(resolver: LocationResolver = Depends(get_location_resolver)):
    """Current location of the session."""
    await resolver.restore()
    return resolver.snapshot()


@router.post("/hydrate", response_model=LocationResponse)
async def hydrate_location(
    request: HydrateRequest,
    resolver: LocationResolver = Depends(get_location_resolver)
):
    """
    Initial session load.

    A profile with both city and state wins; otherwise the session's
    previously stored choice is used.
    """
    return await resolver.hydrate(request.profile)


@router.put("/city", response_model=LocationResponse)
async def select_city(
    request: CitySelectionRequest,
    resolver: LocationResolver = Depends(get_location_resolver)
):
    """Manual city pick; any coordinates are discarded."""
    await resolver.select_city(request.city, request.state)
    return resolver.snapshot()


@router.post("/geolocate", response_model=LocationResponse)
async def geolocate(
    request: GeolocateRequest,
    resolver: LocationResolver = Depends(get_location_resolver)
):
    """
    Resolve from the position (or failure) reported by the client device.

    Failures are returned with their own status codes: 403 for denied or
    unsupported, 503 for unavailable, 504 for timeout. A response that is
    older than the session's current location leaves it untouched.
    """
    await resolver.restore()
    resolver.geolocation = ClientReportedGeolocation(
        latitude=request.latitude,
        longitude=request.longitude,
        error=request.error,
        position_age_seconds=request.position_age_seconds
    )
    try:
        await resolver.request_geolocation(issued_at=request.issued_at)
    except CapabilityError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": e.reason.value, "message": e.message}
        )
    return resolver.snapshot()


@router.delete("/", response_model=LocationResponse)
async def clear_location(resolver: LocationResolver = Depends(get_location_resolver)):
    """Forget the session's location."""
    await resolver.clear()
    return resolver.snapshot()


@router.get("/geocode", response_model=GeocodeResult)
@limiter.limit(place_lookup_limit)
async def reverse_geocode(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    provider: MappingProvider = Depends(get_mapping_provider)
):
    """Best-effort city/state for a coordinate."""
    try:
        return await provider.reverse_geocode(lat, lng)
    except LocatorException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
