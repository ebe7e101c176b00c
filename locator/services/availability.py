"""
Pantry Locator - Availability Aggregator.

Groups per-store availability records for display: one group per exact
chain, then online/brand-direct stores, then independent physical stores.
"""

import logging
from typing import Dict, Iterable, List, Optional

from locator.schemas.availability import (
    AvailabilityGrouping,
    ChainAvailability,
    ChainGroup,
    GroupedLocation,
    StoreAvailability,
)
from locator.schemas.store import Coordinates, StoreChain
from locator.services.proximity import distance_miles, usable_origin

logger = logging.getLogger(__name__)


def _locate(record: StoreAvailability, origin: Optional[Coordinates]) -> GroupedLocation:
    coords = record.store.coordinates
    miles = None
    if coords is not None and usable_origin(origin):
        miles = distance_miles(origin.latitude, origin.longitude, coords.latitude, coords.longitude)
    return GroupedLocation(availability=record, distance_miles=miles)


def _order_locations(locations: List[GroupedLocation], by_distance: bool) -> List[GroupedLocation]:
    if by_distance:
        # Stores without coordinates go last
        return sorted(locations, key=lambda l: (
            l.distance_miles is None,
            l.distance_miles or 0.0,
            l.availability.store.name,
        ))
    return sorted(locations, key=lambda l: (
        (l.availability.store.city or "").lower(),
        l.availability.store.name,
    ))


class AvailabilityAggregator:
    """Stateless grouping of availability records."""

    def aggregate(
        self,
        store_records: Iterable[StoreAvailability],
        chain_records: Iterable[ChainAvailability] = (),
        chains: Optional[Iterable[StoreChain]] = None,
        origin: Optional[Coordinates] = None
    ) -> AvailabilityGrouping:
        """
        Group availability records.

        Store records are grouped by the exact chain id they carry, never by
        company. Chain groups are ordered by descending location count, then
        by chain name. Within a group, locations are ordered by distance from
        the origin when one is usable, else by city name.

        Args:
            store_records: Per-store availability.
            chain_records: Chain-wide availability declarations.
            chains: Known chains, used for group names.
            origin: Optional point to order locations by.

        Returns:
            AvailabilityGrouping
        """
        by_distance = usable_origin(origin)
        names: Dict[str, str] = {c.id: c.name for c in chains or []}
        groups: Dict[str, ChainGroup] = {}

        for declaration in chain_records:
            chain = declaration.chain
            names.setdefault(chain.id, chain.name)
            groups[chain.id] = ChainGroup(
                chain_id=chain.id,
                chain_name=chain.name,
                chain_wide=declaration,
            )

        online: List[GroupedLocation] = []
        independent: List[GroupedLocation] = []

        for record in store_records:
            located = _locate(record, origin)
            chain_id = record.store.chain_id
            if chain_id:
                group = groups.get(chain_id)
                if group is None:
                    group = groups[chain_id] = ChainGroup(
                        chain_id=chain_id,
                        chain_name=names.get(chain_id),
                    )
                group.locations.append(located)
            elif record.store.type.is_online:
                online.append(located)
            else:
                independent.append(located)

        for group in groups.values():
            group.locations = _order_locations(group.locations, by_distance)

        ordered_groups = sorted(
            groups.values(),
            key=lambda g: (-len(g.locations), (g.chain_name or "").lower(), g.chain_id),
        )

        return AvailabilityGrouping(
            chain_groups=ordered_groups,
            online=sorted(online, key=lambda l: l.availability.store.name),
            independent=_order_locations(independent, by_distance),
        )
