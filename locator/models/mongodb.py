"""
Pantry Locator MongoDB Document Models.

Beanie ODM models for MongoDB.
"""

from beanie import Document, Indexed
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime, timezone
from typing import Optional, List
from uuid import UUID, uuid4

from locator.schemas.store import StoreType, ChainType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoreDocument(Document):
    """Store model for MongoDB."""

    uid: UUID = Field(default_factory=uuid4)
    name: str
    type: StoreType
    region_or_scope: str = "Unknown"
    website_url: Optional[str] = None

    # Physical location
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "US"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    place_id: Optional[str] = None  # mapping provider id
    phone_number: Optional[str] = None

    # Chain relationship
    chain_id: Optional[str] = None
    location_identifier: Optional[str] = None

    # Derived lookup fields, written at insert time
    name_key: str = ""
    name_tokens: List[str] = Field(default_factory=list)
    city_key: str = ""
    match_key: Optional[str] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "stores"  # Collection name in MongoDB
        indexes = [
            IndexModel([("uid", ASCENDING)], unique=True),
            # Uniqueness constraints backing exact-match dedup
            IndexModel(
                [("place_id", ASCENDING)],
                unique=True,
                partialFilterExpression={"place_id": {"$type": "string"}},
            ),
            IndexModel(
                [("match_key", ASCENDING)],
                unique=True,
                partialFilterExpression={"match_key": {"$type": "string"}},
            ),
            "name_tokens",
            "city_key",
            "chain_id",
        ]


class StoreChainDocument(Document):
    """
    Store chain model for MongoDB.

    The company key is deliberately absent; it is derived from `name` on read.
    """

    uid: UUID = Field(default_factory=uuid4)
    name: Indexed(str, unique=True)
    slug: Indexed(str, unique=True)
    type: ChainType = ChainType.REGIONAL
    is_active: bool = True
    location_count: int = 0
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "store_chains"
        indexes = [
            "uid",
            "is_active",
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Walmart Neighborhood Market",
                "slug": "walmart-neighborhood-market",
                "type": "national",
                "is_active": True
            }
        }
