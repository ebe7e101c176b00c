"""
Pantry Locator API - FastAPI Dependencies.

Dependency injection helpers for routes. Tests replace these through
`app.dependency_overrides`.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from settings import settings
from locator.integrations.geolocation import GeolocationOptions, UnsupportedGeolocation
from locator.integrations.maps import GoogleMapsProvider, MappingProvider
from locator.services.availability import AvailabilityAggregator
from locator.services.cache import cache_service
from locator.services.chain_normalizer import ChainGroupingService
from locator.services.location_resolver import LocationResolver, LocationStore, RedisLocationStore
from locator.services.store_deduplicator import StoreDeduplicator
from locator.services.store_repository import BeanieStoreRepository, StoreRepository


_repository = BeanieStoreRepository()
_chain_grouping = ChainGroupingService(
    _repository,
    ttl_seconds=settings.CHAIN_INDEX_TTL_SECONDS
)
_mapping_provider = GoogleMapsProvider(
    api_key=settings.GOOGLE_API_KEY,
    timeout_seconds=settings.MAPS_REQUEST_TIMEOUT_SECONDS,
    cache=cache_service,
    geocode_ttl_seconds=settings.CACHE_TTL_GEOCODE,
    details_ttl_seconds=settings.CACHE_TTL_PLACE_DETAILS
)


def get_store_repository() -> StoreRepository:
    """Shared MongoDB store repository."""
    return _repository


def get_chain_grouping() -> ChainGroupingService:
    """Shared chain grouping service; it owns the company key index."""
    return _chain_grouping


def get_mapping_provider() -> MappingProvider:
    """Shared Google Maps adapter."""
    return _mapping_provider


def get_deduplicator(
    repository: StoreRepository = Depends(get_store_repository)
) -> StoreDeduplicator:
    """Store deduplicator configured from settings."""
    return StoreDeduplicator(
        repository,
        similarity_threshold=settings.SIMILARITY_THRESHOLD,
        max_candidates=settings.MAX_SIMILAR_CANDIDATES,
        location_radius_miles=settings.SIMILAR_LOCATION_RADIUS_MILES
    )


def get_aggregator() -> AvailabilityAggregator:
    return AvailabilityAggregator()


async def get_session_id(
    x_session_id: Optional[str] = Header(None, alias="X-Session-Id")
) -> str:
    """
    Get the location session id from the X-Session-Id header.

    Raises:
        HTTPException: 400 if the header is missing or blank.
    """
    if not x_session_id or not x_session_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Session-Id header is required"
        )
    return x_session_id.strip()


def get_location_store(session_id: str = Depends(get_session_id)) -> LocationStore:
    """Redis-backed stored location for the session."""
    return RedisLocationStore(
        cache_service,
        session_id,
        ttl_seconds=settings.CACHE_TTL_SESSION_LOCATION
    )


def get_geolocation_options() -> GeolocationOptions:
    return GeolocationOptions(
        timeout_seconds=settings.GEOLOCATION_TIMEOUT_SECONDS,
        maximum_age_seconds=settings.GEOLOCATION_MAX_AGE_SECONDS,
        high_accuracy=True
    )


def get_location_resolver(
    store: LocationStore = Depends(get_location_store),
    geocoder: MappingProvider = Depends(get_mapping_provider),
    options: GeolocationOptions = Depends(get_geolocation_options)
) -> LocationResolver:
    """
    Resolver for one request.

    The device capability defaults to unsupported; the geolocate route
    swaps in the position reported by the client.
    """
    return LocationResolver(UnsupportedGeolocation(), geocoder, store, options)
