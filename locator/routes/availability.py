# locator/routes/availability.py
"""
Pantry Locator API - Availability Routes.

Groups availability records by exact chain for display.
"""

from fastapi import APIRouter, Depends
import logging

from locator.dependencies import get_aggregator, get_store_repository
from locator.schemas.availability import (
    AvailabilityGroupRequest,
    AvailabilityGrouping,
    ChainAvailability,
    StoreAvailability,
)
from locator.schemas.store import Coordinates
from locator.services.availability import AvailabilityAggregator
from locator.services.store_repository import StoreRepository
from locator.utils.errors import NotFoundError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/grouped", response_model=AvailabilityGrouping)
async def group_availability(
    request: AvailabilityGroupRequest,
    repository: StoreRepository = Depends(get_store_repository),
    aggregator: AvailabilityAggregator = Depends(get_aggregator)
):
    """
    Group availability records into chain groups, online stores and
    independent stores.

    Records that reference unknown stores or chains are skipped.
    """
    store_records = []
    for entry in request.stores:
        try:
            store = await repository.require_store(entry.store_id)
        except NotFoundError as e:
            logger.info(f"Skipping availability record: {e.detail}")
            continue
        store_records.append(StoreAvailability(store=store, available=entry.available, price=entry.price))

    chain_records = []
    for entry in request.chains:
        try:
            chain = await repository.require_chain(entry.chain_id)
        except NotFoundError as e:
            logger.info(f"Skipping availability record: {e.detail}")
            continue
        chain_records.append(
            ChainAvailability(chain=chain, available=entry.available, price_range=entry.price_range)
        )

    chains = await repository.list_chains(active_only=False)

    origin = None
    if request.latitude is not None and request.longitude is not None:
        origin = Coordinates(latitude=request.latitude, longitude=request.longitude)

    return aggregator.aggregate(store_records, chain_records, chains=chains, origin=origin)
