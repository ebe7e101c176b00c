"""
Pantry Locator - Store Schemas.

Pydantic schemas for stores, chains and duplicate classification.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict, computed_field


class StoreType(str, Enum):
    """Kinds of retail presence a store record can describe."""
    PHYSICAL = "physical"
    ONLINE_RETAILER = "online_retailer"
    BRAND_DIRECT = "brand_direct"

    @property
    def is_online(self) -> bool:
        return self is not StoreType.PHYSICAL


class ChainType(str, Enum):
    """Reach of a store chain."""
    NATIONAL = "national"
    REGIONAL = "regional"
    LOCAL = "local"


class Coordinates(BaseModel):
    """A WGS84 point."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class StoreInput(BaseModel):
    """
    Schema for a candidate store submitted by a contribution flow.

    Attributes:
        name: Store display name.
        type: physical, online_retailer or brand_direct.
        region_or_scope: Declared region for online stores (e.g. "US - Online").
        address: Street address (physical stores).
        latitude: Latitude, if known.
        longitude: Longitude, if known.
        place_id: External place identifier from the mapping provider.
        chain_id: Parent chain, if the store belongs to one.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Green Grocer",
                "type": "physical",
                "address": "1 Main St",
                "city": "Springfield",
                "state": "IL",
                "postal_code": "62701",
                "latitude": 39.7817,
                "longitude": -89.6501
            }
        }
    )

    name: str = Field(..., description="Store display name")
    type: StoreType = Field(default=StoreType.PHYSICAL, description="Store type")
    region_or_scope: str = Field(default="Unknown", description="Declared region or scope")
    website_url: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "US"
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    place_id: Optional[str] = Field(None, description="Mapping provider place id")
    phone_number: Optional[str] = None
    chain_id: Optional[str] = None
    location_identifier: Optional[str] = Field(None, description="Chain-specific store number")

    @property
    def coordinates(self) -> Optional[Coordinates]:
        """Coordinates when both components are present and finite."""
        if self.latitude is None or self.longitude is None:
            return None
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class Store(StoreInput):
    """A persisted store."""
    id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StoreCreateRequest(StoreInput):
    """Request to create a store, optionally bypassing the duplicate check."""
    skip_duplicate_check: bool = False


class StoreChain(BaseModel):
    """
    A named retail company.

    The company key is derived from the current name every time it is read;
    it is never loaded from storage.
    """
    id: str
    name: str
    slug: str = ""
    type: ChainType = ChainType.REGIONAL
    is_active: bool = True
    location_count: int = 0
    logo_url: Optional[str] = None
    website_url: Optional[str] = None

    @computed_field
    @property
    def company_key(self) -> str:
        from locator.services.chain_normalizer import normalize_company_key
        return normalize_company_key(self.name)


class DuplicateClassification(str, Enum):
    """Outcome of comparing a candidate against known stores."""
    EXACT = "exact"
    SIMILAR = "similar"
    NONE = "none"


class StoreMatch(BaseModel):
    """A known store scored against a candidate."""
    store: Store
    score: float
    name_score: float
    location_score: float


class DuplicateCandidate(BaseModel):
    """
    Classification of a candidate store.

    `store` is set for exact matches; `candidates` is ordered by descending
    score for similar matches.
    """
    classification: DuplicateClassification
    store: Optional[Store] = None
    candidates: List[StoreMatch] = Field(default_factory=list)

    @classmethod
    def exact(cls, store: Store) -> "DuplicateCandidate":
        return cls(classification=DuplicateClassification.EXACT, store=store)

    @classmethod
    def similar(cls, candidates: List[StoreMatch]) -> "DuplicateCandidate":
        return cls(classification=DuplicateClassification.SIMILAR, candidates=candidates)

    @classmethod
    def none(cls) -> "DuplicateCandidate":
        return cls(classification=DuplicateClassification.NONE)


class StoreCreationResult(BaseModel):
    """Either the created store or the duplicate classification that blocked it."""
    created: Optional[Store] = None
    duplicate: Optional[DuplicateCandidate] = None

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate is not None


class CreateStoreResponse(BaseModel):
    """Store creation response."""
    store: Optional[Store] = None
    is_duplicate: bool = False
    duplicate_type: Optional[DuplicateClassification] = None
    similar_stores: List[StoreMatch] = Field(default_factory=list)
    message: Optional[str] = None


class NearbyStore(BaseModel):
    """A store with its distance from the origin, if one was usable."""
    store: Store
    distance_miles: Optional[float] = None


class NearbySearchResult(BaseModel):
    """
    Result of a radius search.

    Attributes:
        stores: Stores ordered by distance (input order when showing_all).
        radius_miles: Radius the stores were filtered with.
        expansions: Number of times the radius was doubled.
        next_radius_miles: Radius for a further caller-driven expansion, or None
            once the expansion cap is reached.
        showing_all: True when the origin had no usable coordinates.
    """
    stores: List[NearbyStore] = Field(default_factory=list)
    radius_miles: float
    expansions: int = 0
    next_radius_miles: Optional[float] = None
    showing_all: bool = False
