# locator/routes/chains.py
"""
Pantry Locator API - Store Chain Routes.

Chain lookups and company-level grouping of chains.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
from pydantic import BaseModel
import logging

from settings import settings
from locator.dependencies import get_chain_grouping, get_store_repository
from locator.schemas.store import Coordinates, NearbySearchResult, StoreChain
from locator.services.chain_normalizer import ChainGroupingService
from locator.services.proximity import search_nearby
from locator.services.store_repository import StoreRepository
from locator.utils.errors import NotFoundError

logger = logging.getLogger(__name__)
router = APIRouter()


class RelatedChainsResponse(BaseModel):
    """Related chain ids for a chain."""
    chain_id: str
    include_related: bool
    company_key: Optional[str] = None
    related_chain_ids: List[str]
    related_chain_names: List[str] = []


@router.get("/", response_model=List[StoreChain])
async def list_chains(
    active_only: bool = True,
    repository: StoreRepository = Depends(get_store_repository)
):
    """List store chains with their derived company keys."""
    return await repository.list_chains(active_only=active_only)


@router.get("/{chain_id}", response_model=StoreChain)
async def get_chain(
    chain_id: str,
    repository: StoreRepository = Depends(get_store_repository)
):
    """Get chain by ID."""
    try:
        return await repository.require_chain(chain_id)
    except NotFoundError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{chain_id}/related", response_model=RelatedChainsResponse)
async def related_chains(
    chain_id: str,
    include_related: bool = True,
    grouping: ChainGroupingService = Depends(get_chain_grouping),
    repository: StoreRepository = Depends(get_store_repository)
):
    """
    Chains owned by the same company.

    An unknown chain id is not an error; it has no related chains.
    """
    related = await grouping.get_related_chain_ids(chain_id, include_related)
    if not related:
        return RelatedChainsResponse(
            chain_id=chain_id,
            include_related=include_related,
            related_chain_ids=[]
        )

    chain = await repository.get_chain(chain_id)
    if include_related:
        names = await grouping.get_related_chain_names(chain_id)
    else:
        names = [chain.name] if chain else []

    return RelatedChainsResponse(
        chain_id=chain_id,
        include_related=include_related,
        company_key=chain.company_key if chain else None,
        related_chain_ids=sorted(related),
        related_chain_names=names
    )


@router.get("/{chain_id}/locations", response_model=NearbySearchResult)
async def chain_locations(
    chain_id: str,
    include_related: bool = False,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(settings.DEFAULT_SEARCH_RADIUS_MILES, gt=0),
    expand: int = Query(0, ge=0, description="Radius doublings requested by the caller"),
    grouping: ChainGroupingService = Depends(get_chain_grouping),
    repository: StoreRepository = Depends(get_store_repository)
):
    """Locations of a chain (or its whole company), nearest first when an origin is given."""
    chain_ids = await grouping.get_related_chain_ids(chain_id, include_related)
    if not chain_ids:
        raise HTTPException(status_code=404, detail="Chain not found")

    stores = await repository.list_stores(chain_ids=chain_ids)
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
