"""
Pantry Locator - Store Repository.

Read access to stores and chains plus the single guarded insert used by
store deduplication. The MongoDB implementation relies on unique indexes
for the exact-match keys; a violation surfaces as ConflictError.
"""

import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Hashable, Iterable, List, Optional

from pymongo.errors import DuplicateKeyError

from locator.models.mongodb import StoreDocument, StoreChainDocument
from locator.schemas.store import Store, StoreChain, StoreInput, StoreType
from locator.utils.errors import ConflictError, NotFoundError
from locator.utils.text import normalize_place

logger = logging.getLogger(__name__)

ONLINE_TYPES = [StoreType.ONLINE_RETAILER, StoreType.BRAND_DIRECT]


@dataclass
class StoreKeys:
    """Normalized lookup keys derived from a store candidate."""
    name_key: str
    name_tokens: List[str] = field(default_factory=list)
    city_key: str = ""
    match_key: Optional[str] = None


class StoreRepository(ABC):
    """Base class for store/chain persistence."""

    @abstractmethod
    async def get_store(self, store_id: str) -> Optional[Store]:
        """Fetch a store by id; None when unknown or malformed."""
        pass

    @abstractmethod
    async def list_stores(
        self,
        chain_ids: Optional[Iterable[str]] = None,
        city: Optional[str] = None,
        state: Optional[str] = None
    ) -> List[Store]:
        """List stores, optionally filtered by chain, city and state."""
        pass

    @abstractmethod
    async def find_by_place_id(self, place_id: str) -> Optional[Store]:
        pass

    @abstractmethod
    async def find_by_match_key(self, match_key: str) -> Optional[Store]:
        pass

    @abstractmethod
    async def find_match_candidates(
        self,
        keys: StoreKeys,
        online: bool,
        limit: int = 200
    ) -> List[Store]:
        """
        Stores of the same kind sharing a name token or the city.

        Ordered by likely match strength: shared token in the same city,
        then shared token elsewhere, then same city only.
        """
        pass

    @abstractmethod
    async def insert_store(self, candidate: StoreInput, keys: StoreKeys) -> Store:
        """
        Insert a new store.

        Raises:
            ConflictError: If the place id or match key is already stored.
        """
        pass

    @abstractmethod
    async def get_chain(self, chain_id: str) -> Optional[StoreChain]:
        pass

    @abstractmethod
    async def list_chains(self, active_only: bool = True) -> List[StoreChain]:
        pass

    @abstractmethod
    async def chain_revision(self) -> Hashable:
        """Marker that changes whenever a chain is added, renamed or retired."""
        pass

    async def require_store(self, store_id: str) -> Store:
        """
        Fetch a store that must exist.

        Raises:
            NotFoundError: If the id is unknown.
        """
        store = await self.get_store(store_id)
        if store is None:
            raise NotFoundError("Store not found", detail=f"No store with id {store_id!r}")
        return store

    async def require_chain(self, chain_id: str) -> StoreChain:
        """
        Fetch a chain that must exist.

        Raises:
            NotFoundError: If the id is unknown.
        """
        chain = await self.get_chain(chain_id)
        if chain is None:
            raise NotFoundError("Chain not found", detail=f"No chain with id {chain_id!r}")
        return chain


def _parse_uid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        return None


def store_from_document(doc: StoreDocument) -> Store:
    """Convert a StoreDocument to the domain Store."""
    return Store(
        id=str(doc.uid),
        name=doc.name,
        type=doc.type,
        region_or_scope=doc.region_or_scope,
        website_url=doc.website_url,
        address=doc.address,
        city=doc.city,
        state=doc.state,
        postal_code=doc.postal_code,
        country=doc.country,
        latitude=doc.latitude,
        longitude=doc.longitude,
        place_id=doc.place_id,
        phone_number=doc.phone_number,
        chain_id=doc.chain_id,
        location_identifier=doc.location_identifier,
        created_at=doc.created_at,
    )


def chain_from_document(doc: StoreChainDocument) -> StoreChain:
    """Convert a StoreChainDocument to the domain StoreChain."""
    return StoreChain(
        id=str(doc.uid),
        name=doc.name,
        slug=doc.slug,
        type=doc.type,
        is_active=doc.is_active,
        location_count=doc.location_count,
        logo_url=doc.logo_url,
        website_url=doc.website_url,
    )


class BeanieStoreRepository(StoreRepository):
    """MongoDB repository backed by Beanie documents."""

    async def get_store(self, store_id: str) -> Optional[Store]:
        uid = _parse_uid(store_id)
        if uid is None:
            return None
        doc = await StoreDocument.find_one(StoreDocument.uid == uid)
        return store_from_document(doc) if doc else None

    async def list_stores(
        self,
        chain_ids: Optional[Iterable[str]] = None,
        city: Optional[str] = None,
        state: Optional[str] = None
    ) -> List[Store]:
        query = {}
        if chain_ids is not None:
            query["chain_id"] = {"$in": list(chain_ids)}
        if city:
            query["city_key"] = normalize_place(city)
        if state:
            query["state"] = {"$regex": f"^{re.escape(state.strip())}$", "$options": "i"}

        docs = await StoreDocument.find(query).sort(+StoreDocument.name).to_list()
        return [store_from_document(d) for d in docs]

    async def find_by_place_id(self, place_id: str) -> Optional[Store]:
        doc = await StoreDocument.find_one(StoreDocument.place_id == place_id)
        return store_from_document(doc) if doc else None

    async def find_by_match_key(self, match_key: str) -> Optional[Store]:
        doc = await StoreDocument.find_one(StoreDocument.match_key == match_key)
        return store_from_document(doc) if doc else None

    async def find_match_candidates(
        self,
        keys: StoreKeys,
        online: bool,
        limit: int = 200
    ) -> List[Store]:
        kind = {"type": {"$in": [t.value for t in ONLINE_TYPES]} if online else StoreType.PHYSICAL.value}
        shares_token = {"name_tokens": {"$in": keys.name_tokens}} if keys.name_tokens else None
        same_city = {"city_key": keys.city_key} if keys.city_key and not online else None

        # Strongest matches first so the limit never cuts them off
        tiers = []
        if shares_token and same_city:
            tiers.append({**shares_token, **same_city})
        if shares_token:
            tiers.append(shares_token)
        if same_city:
            tiers.append(same_city)

        docs: List[StoreDocument] = []
        seen = []
        for tier in tiers:
            if len(docs) >= limit:
                break
            query = {**kind, **tier}
            if seen:
                query["uid"] = {"$nin": seen}
            batch = await StoreDocument.find(query).limit(limit - len(docs)).to_list()
            docs.extend(batch)
            seen.extend(doc.uid for doc in batch)
        return [store_from_document(d) for d in docs]

    async def insert_store(self, candidate: StoreInput, keys: StoreKeys) -> Store:
        doc = StoreDocument(
            **candidate.model_dump(),
            name_key=keys.name_key,
            name_tokens=keys.name_tokens,
            city_key=keys.city_key,
            match_key=keys.match_key,
        )
        try:
            await doc.insert()
        except DuplicateKeyError as e:
            logger.info(f"Store insert rejected by unique index: {keys.match_key or candidate.place_id}")
            raise ConflictError(
                message="Store already exists",
                detail=str(e),
                key=keys.match_key,
            ) from e
        return store_from_document(doc)

    async def get_chain(self, chain_id: str) -> Optional[StoreChain]:
        uid = _parse_uid(chain_id)
        if uid is None:
            return None
        doc = await StoreChainDocument.find_one(StoreChainDocument.uid == uid)
        return chain_from_document(doc) if doc else None

    async def list_chains(self, active_only: bool = True) -> List[StoreChain]:
        query = {"is_active": True} if active_only else {}
        docs = await StoreChainDocument.find(query).sort(+StoreChainDocument.name).to_list()
        return [chain_from_document(d) for d in docs]

    async def chain_revision(self) -> Hashable:
        active = await StoreChainDocument.find(StoreChainDocument.is_active == True).count()  # noqa: E712
        latest = await StoreChainDocument.find_all().sort(-StoreChainDocument.updated_at).first_or_none()
        return active, latest.updated_at.isoformat() if latest else None
