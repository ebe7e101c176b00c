# locator/routes/stores.py
"""
Pantry Locator API - Store Routes.

Store listing, proximity search, duplicate-aware creation and mapping
provider place lookups.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from typing import List, Optional
import logging

from settings import settings
from locator.dependencies import (
    get_chain_grouping,
    get_deduplicator,
    get_mapping_provider,
    get_store_repository,
)
from locator.integrations.maps import MappingProvider
from locator.middleware.rate_limit import limiter, place_lookup_limit
from locator.schemas.places import PlaceAutocompleteResponse, PlaceDetailsResponse
from locator.schemas.store import (
    Coordinates,
    CreateStoreResponse,
    DuplicateCandidate,
    DuplicateClassification,
    NearbySearchResult,
    Store,
    StoreCreateRequest,
    StoreInput,
)
from locator.services.chain_normalizer import ChainGroupingService
from locator.services.proximity import search_nearby
from locator.services.store_deduplicator import StoreDeduplicator
from locator.services.store_repository import StoreRepository
from locator.utils.errors import LocatorException, NotFoundError, ProviderError

logger = logging.getLogger(__name__)
router = APIRouter()

MANUAL_ENTRY_MESSAGE = "Place search is unavailable. Enter the store details manually."


async def _chain_filter(
    grouping: ChainGroupingService,
    chain_id: Optional[str],
    include_related: bool
) -> Optional[set]:
    if not chain_id:
        return None
    return await grouping.get_related_chain_ids(chain_id, include_related)


@router.get("/", response_model=List[Store])
async def list_stores(
    chain_id: Optional[str] = None,
    include_related: bool = False,
    city: Optional[str] = None,
    state: Optional[str] = None,
    repository: StoreRepository = Depends(get_store_repository),
    grouping: ChainGroupingService = Depends(get_chain_grouping)
):
    """List stores, optionally filtered by chain (or company), city and state."""
    chain_ids = await _chain_filter(grouping, chain_id, include_related)
    return await repository.list_stores(chain_ids=chain_ids, city=city, state=state)


@router.get("/nearby", response_model=NearbySearchResult)
async def nearby_stores(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(settings.DEFAULT_SEARCH_RADIUS_MILES, gt=0),
    expand: int = Query(0, ge=0, description="Radius doublings requested by the caller"),
    chain_id: Optional[str] = None,
    include_related: bool = False,
    city: Optional[str] = None,
    state: Optional[str] = None,
    repository: StoreRepository = Depends(get_store_repository),
    grouping: ChainGroupingService = Depends(get_chain_grouping)
):
    """
    Stores around an origin, nearest first.

    Without both `lat` and `lng` every matching store is returned and the
    result is flagged `showing_all`. An empty radius is doubled at most
    MAX_RADIUS_EXPANSIONS times; `next_radius_miles` tells the client
    whether it can ask for more.
    """
    chain_ids = await _chain_filter(grouping, chain_id, include_related)
    stores = await repository.list_stores(chain_ids=chain_ids, city=city, state=state)

    origin = None
    if lat is not None and lng is not None:
        origin = Coordinates(latitude=lat, longitude=lng)

    return search_nearby(
        origin,
        stores,
        radius,
        max_expansions=settings.MAX_RADIUS_EXPANSIONS,
        expand=expand
    )


@router.post("/classify", response_model=DuplicateCandidate)
async def classify_store(
    candidate: StoreInput,
    deduplicator: StoreDeduplicator = Depends(get_deduplicator)
):
    """Classify a candidate store as exact, similar or new without creating it."""
    try:
        return await deduplicator.classify(candidate)
    except LocatorException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/", response_model=CreateStoreResponse)
async def create_store(
    request: StoreCreateRequest,
    response: Response,
    deduplicator: StoreDeduplicator = Depends(get_deduplicator)
):
    """
    Create a store unless it duplicates a known one.

    Returns 201 with the new store, or 200 with the existing store (exact)
    or the ranked similar stores the user must review.
    """
    candidate = StoreInput(**request.model_dump(exclude={"skip_duplicate_check"}))
    try:
        result = await deduplicator.create(
            candidate,
            skip_duplicate_check=request.skip_duplicate_check
        )
    except LocatorException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    if result.created is not None:
        response.status_code = status.HTTP_201_CREATED
        return CreateStoreResponse(store=result.created, is_duplicate=False)

    duplicate = result.duplicate
    if duplicate.classification is DuplicateClassification.EXACT:
        return CreateStoreResponse(
            store=duplicate.store,
            is_duplicate=True,
            duplicate_type=DuplicateClassification.EXACT,
            message="An identical store already exists"
        )
    return CreateStoreResponse(
        store=None,
        is_duplicate=True,
        duplicate_type=DuplicateClassification.SIMILAR,
        similar_stores=duplicate.candidates,
        message="Similar stores found. Please review before creating."
    )


@router.get("/places/autocomplete", response_model=PlaceAutocompleteResponse)
@limiter.limit(place_lookup_limit)
async def autocomplete_places(
    request: Request,
    q: str = Query(..., description="Free text typed by the user"),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_meters: Optional[int] = Query(None, gt=0),
    provider: MappingProvider = Depends(get_mapping_provider)
):
    """Place predictions for store search; falls back to manual entry on provider failure."""
    location = None
    if lat is not None and lng is not None:
        location = Coordinates(latitude=lat, longitude=lng)
    try:
        predictions = await provider.autocomplete(q, location=location, radius_meters=radius_meters)
    except ProviderError as e:
        logger.warning(f"Autocomplete failed, offering manual entry: {e.message}")
        return PlaceAutocompleteResponse(manual_entry=True, message=MANUAL_ENTRY_MESSAGE)
    return PlaceAutocompleteResponse(predictions=predictions)


@router.get("/places/details/{place_id}", response_model=PlaceDetailsResponse)
@limiter.limit(place_lookup_limit)
async def place_details(
    request: Request,
    place_id: str,
    chain_id: Optional[str] = None,
    provider: MappingProvider = Depends(get_mapping_provider)
):
    """Structured details for a place, plus a ready-to-classify store candidate."""
    try:
        details = await provider.place_details(place_id)
    except ProviderError as e:
        logger.warning(f"Place details failed, offering manual entry: {e.message}")
        return PlaceDetailsResponse(manual_entry=True, message=MANUAL_ENTRY_MESSAGE)

    if details is None:
        raise HTTPException(status_code=404, detail="Place not found")

    return PlaceDetailsResponse(
        place=details,
        store_candidate=details.to_store_input(chain_id=chain_id)
    )


@router.get("/{store_id}", response_model=Store)
async def get_store(
    store_id: str,
    repository: StoreRepository = Depends(get_store_repository)
):
    """Get store by ID."""
    try:
        return await repository.require_store(store_id)
    except NotFoundError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
