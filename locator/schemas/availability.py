"""
Pantry Locator - Availability Schemas.

Inputs and outputs of the availability grouping.
"""

from typing import Optional, List

from pydantic import BaseModel, Field, computed_field

from locator.schemas.store import Store, StoreChain


class StoreAvailability(BaseModel):
    """Availability of a product at one store."""
    store: Store
    available: bool = True
    price: Optional[str] = None


class ChainAvailability(BaseModel):
    """Availability declared for a whole chain."""
    chain: StoreChain
    available: bool = True
    price_range: Optional[str] = None


class GroupedLocation(BaseModel):
    """A store-level record placed in a bucket, with its distance when known."""
    availability: StoreAvailability
    distance_miles: Optional[float] = None


class ChainGroup(BaseModel):
    """Store-level records of one exact chain."""
    chain_id: str
    chain_name: Optional[str] = None
    chain_wide: Optional[ChainAvailability] = None
    locations: List[GroupedLocation] = Field(default_factory=list)

    @computed_field
    @property
    def location_count(self) -> int:
        return len(self.locations)


class AvailabilityGrouping(BaseModel):
    """Presentation-ready grouping of availability records."""
    chain_groups: List[ChainGroup] = Field(default_factory=list)
    online: List[GroupedLocation] = Field(default_factory=list)
    independent: List[GroupedLocation] = Field(default_factory=list)


class StoreAvailabilityEntry(BaseModel):
    """Store-level record by id, as submitted over HTTP."""
    store_id: str
    available: bool = True
    price: Optional[str] = None


class ChainAvailabilityEntry(BaseModel):
    """Chain-level record by id, as submitted over HTTP."""
    chain_id: str
    available: bool = True
    price_range: Optional[str] = None


class AvailabilityGroupRequest(BaseModel):
    """Request to group availability records around an optional origin."""
    stores: List[StoreAvailabilityEntry] = Field(default_factory=list)
    chains: List[ChainAvailabilityEntry] = Field(default_factory=list)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
