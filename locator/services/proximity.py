"""
Pantry Locator - Proximity Engine.

Great-circle distance and radius filtering over store lists.
Pure functions; nothing here raises for bad coordinates.
"""

import math
from typing import Iterable, List, Optional

from locator.schemas.store import Coordinates, NearbySearchResult, NearbyStore, Store

EARTH_RADIUS_MILES = 3959.0


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine great-circle distance in miles.

    Symmetric in its two points and 0 for identical points.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push `a` a hair outside [0, 1] for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def usable_origin(origin: Optional[Coordinates]) -> bool:
    """True when the origin carries finite coordinates."""
    if origin is None:
        return False
    return math.isfinite(origin.latitude) and math.isfinite(origin.longitude)


def filter_by_radius(
    origin: Optional[Coordinates],
    stores: Iterable[Store],
    radius_miles: float
) -> List[NearbyStore]:
    """
    Stores within `radius_miles` of the origin, nearest first.

    Stores without coordinates are left out. Ties are broken by store name,
    then id. Without a usable origin every store is returned, in input
    order and without a distance.

    Args:
        origin: Point to measure from.
        stores: Candidate stores.
        radius_miles: Inclusive radius.

    Returns:
        List[NearbyStore]: Matching stores with their distances.
    """
    if not usable_origin(origin):
        return [NearbyStore(store=s) for s in stores]

    nearby = []
    for store in stores:
        coords = store.coordinates
        if coords is None:
            continue
        miles = distance_miles(origin.latitude, origin.longitude, coords.latitude, coords.longitude)
        if miles <= radius_miles:
            nearby.append(NearbyStore(store=store, distance_miles=miles))

    nearby.sort(key=lambda n: (n.distance_miles, n.store.name, n.store.id))
    return nearby


def radius_sequence(radius_miles: float, max_expansions: int) -> List[float]:
    """Radii tried by an expanding search: r, 2r, 4r, ... up to the cap."""
    return [radius_miles * (2 ** step) for step in range(max(0, max_expansions) + 1)]


def search_nearby(
    origin: Optional[Coordinates],
    stores: Iterable[Store],
    radius_miles: float,
    max_expansions: int = 2,
    expand: int = 0
) -> NearbySearchResult:
    """
    Radius search with a bounded doubling fallback.

    Starting `expand` doublings above `radius_miles`, the radius is doubled
    while no store is found, stopping after `max_expansions` doublings in
    total. The result tells the caller the next radius it may ask for, or
    None once the cap is reached.

    Args:
        origin: Point to measure from.
        stores: Candidate stores.
        radius_miles: Base radius.
        max_expansions: Maximum number of doublings of the base radius.
        expand: Doublings the caller explicitly asked for.

    Returns:
        NearbySearchResult
    """
    stores = list(stores)
    if not usable_origin(origin):
        return NearbySearchResult(
            stores=filter_by_radius(None, stores, radius_miles),
            radius_miles=radius_miles,
            showing_all=True,
        )

    radii = radius_sequence(radius_miles, max_expansions)
    step = min(max(0, expand), len(radii) - 1)
    found = filter_by_radius(origin, stores, radii[step])
    while not found and step < len(radii) - 1:
        step += 1
        found = filter_by_radius(origin, stores, radii[step])

    return NearbySearchResult(
        stores=found,
        radius_miles=radii[step],
        expansions=step,
        next_radius_miles=radii[step + 1] if step < len(radii) - 1 else None,
    )
