"""Pantry Locator - Schemas Package."""

from locator.schemas.store import (
    StoreType,
    ChainType,
    Coordinates,
    StoreInput,
    Store,
    StoreChain,
    DuplicateClassification,
    DuplicateCandidate,
    StoreMatch,
    StoreCreationResult,
    NearbyStore,
    NearbySearchResult,
)
from locator.schemas.location import (
    LocationSource,
    ResolverState,
    UserLocation,
    ProfileLocation,
    GeocodeResult,
)
from locator.schemas.places import PlacePrediction, PlaceDetails

__all__ = [
    "StoreType",
    "ChainType",
    "Coordinates",
    "StoreInput",
    "Store",
    "StoreChain",
    "DuplicateClassification",
    "DuplicateCandidate",
    "StoreMatch",
    "StoreCreationResult",
    "NearbyStore",
    "NearbySearchResult",
    "LocationSource",
    "ResolverState",
    "UserLocation",
    "ProfileLocation",
    "GeocodeResult",
    "PlacePrediction",
    "PlaceDetails",
]
