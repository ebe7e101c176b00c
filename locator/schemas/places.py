"""
Pantry Locator - Place Schemas.

Normalized shapes of mapping-provider autocomplete and details results.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from locator.schemas.store import StoreInput, StoreType


class PlacePrediction(BaseModel):
    """Autocomplete prediction."""
    place_id: str
    description: str
    main_text: str
    secondary_text: str = ""


class PlaceDetails(BaseModel):
    """Structured place details flattened from the provider response."""
    place_id: str
    name: str
    formatted_address: str = ""
    website: Optional[str] = None
    phone_number: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    def to_store_input(self, chain_id: Optional[str] = None) -> StoreInput:
        """Build a physical store candidate from these details."""
        return StoreInput(
            name=self.name,
            type=StoreType.PHYSICAL,
            region_or_scope=", ".join(p for p in (self.city, self.state) if p) or "Unknown",
            website_url=self.website,
            address=self.street or self.formatted_address or None,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country or "US",
            latitude=self.latitude,
            longitude=self.longitude,
            place_id=self.place_id,
            phone_number=self.phone_number,
            chain_id=chain_id,
        )


class PlaceAutocompleteResponse(BaseModel):
    """
    Autocomplete response.

    `manual_entry` is set when the provider failed and the client should
    fall back to a hand-entered store.
    """
    predictions: List[PlacePrediction] = Field(default_factory=list)
    manual_entry: bool = False
    message: Optional[str] = None


class PlaceDetailsResponse(BaseModel):
    """Place details plus the store candidate built from them."""
    place: Optional[PlaceDetails] = None
    store_candidate: Optional[StoreInput] = None
    manual_entry: bool = False
    message: Optional[str] = None
