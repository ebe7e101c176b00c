import asyncio
import os
import sys
import uuid
from typing import Dict, Iterable, List, Optional

import pytest

# Settings are read at import time; keep rate limiting off and validation relaxed
os.environ.setdefault("ENV", "testing")

# Ensure the project root is in the python path for all tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from locator.integrations.maps import MappingProvider
from locator.schemas.location import GeocodeResult, UserLocation
from locator.schemas.places import PlaceDetails, PlacePrediction
from locator.schemas.store import ChainType, Store, StoreChain, StoreInput
from locator.services.location_resolver import LocationStore
from locator.services.store_deduplicator import derive_store_keys
from locator.services.store_repository import StoreKeys, StoreRepository
from locator.utils.errors import ConflictError, ProviderError
from locator.utils.text import normalize_place


class InMemoryStoreRepository(StoreRepository):
    """
    Repository fake with the same uniqueness rules as the MongoDB indexes.

    Reads take their snapshot before yielding to the event loop, so
    concurrent callers can act on stale data the way they would against a
    real database. The check-and-insert never yields.
    """

    def __init__(self):
        self.stores: Dict[str, Store] = {}
        self.keys: Dict[str, StoreKeys] = {}
        self.chains: Dict[str, StoreChain] = {}
        self.insert_attempts = 0
        self.chain_version = 0
        self.chain_lists = 0

    # Seeding helpers

    def add_chain(self, name: str, chain_type: ChainType = ChainType.NATIONAL, is_active: bool = True) -> StoreChain:
        chain = StoreChain(
            id=str(uuid.uuid4()),
            name=name,
            slug=name.lower().replace(" ", "-"),
            type=chain_type,
            is_active=is_active,
        )
        self.chains[chain.id] = chain
        self.chain_version += 1
        return chain

    def rename_chain(self, chain_id: str, name: str, touch: bool = True) -> StoreChain:
        """Rename a chain; `touch=False` models a writer that leaves the revision alone."""
        chain = self.chains[chain_id].model_copy(update={"name": name})
        self.chains[chain_id] = chain
        if touch:
            self.chain_version += 1
        return chain

    def deactivate_chain(self, chain_id: str, touch: bool = True) -> StoreChain:
        chain = self.chains[chain_id].model_copy(update={"is_active": False})
        self.chains[chain_id] = chain
        if touch:
            self.chain_version += 1
        return chain

    def add_store(self, **fields) -> Store:
        candidate = StoreInput(**fields)
        keys = derive_store_keys(candidate)
        store = Store(id=str(uuid.uuid4()), **candidate.model_dump())
        self.stores[store.id] = store
        self.keys[store.id] = keys
        return store

    # StoreRepository

    async def get_store(self, store_id: str) -> Optional[Store]:
        result = self.stores.get(store_id)
        await asyncio.sleep(0)
        return result

    async def list_stores(
        self,
        chain_ids: Optional[Iterable[str]] = None,
        city: Optional[str] = None,
        state: Optional[str] = None
    ) -> List[Store]:
        wanted = set(chain_ids) if chain_ids is not None else None
        result = []
        for store in self.stores.values():
            if wanted is not None and store.chain_id not in wanted:
                continue
            if city and normalize_place(store.city) != normalize_place(city):
                continue
            if state and (store.state or "").lower() != state.strip().lower():
                continue
            result.append(store)
        result.sort(key=lambda s: s.name)
        await asyncio.sleep(0)
        return result

    async def find_by_place_id(self, place_id: str) -> Optional[Store]:
        result = next((s for s in self.stores.values() if s.place_id == place_id), None)
        await asyncio.sleep(0)
        return result

    async def find_by_match_key(self, match_key: str) -> Optional[Store]:
        result = next(
            (self.stores[sid] for sid, k in self.keys.items() if k.match_key == match_key),
            None,
        )
        await asyncio.sleep(0)
        return result

    async def find_match_candidates(self, keys: StoreKeys, online: bool, limit: int = 200) -> List[Store]:
        tokens = set(keys.name_tokens)
        both, token_only, city_only = [], [], []
        for store_id, store in self.stores.items():
            if store.type.is_online != online:
                continue
            stored = self.keys[store_id]
            shares_token = bool(tokens & set(stored.name_tokens))
            same_city = not online and bool(keys.city_key) and keys.city_key == stored.city_key
            if shares_token and same_city:
                both.append(store)
            elif shares_token:
                token_only.append(store)
            elif same_city:
                city_only.append(store)
        await asyncio.sleep(0)
        return (both + token_only + city_only)[:limit]

    async def insert_store(self, candidate: StoreInput, keys: StoreKeys) -> Store:
        self.insert_attempts += 1
        for store_id, store in self.stores.items():
            if candidate.place_id and store.place_id == candidate.place_id:
                raise ConflictError("Store already exists", key=candidate.place_id)
            if keys.match_key and self.keys[store_id].match_key == keys.match_key:
                raise ConflictError("Store already exists", key=keys.match_key)
        store = Store(id=str(uuid.uuid4()), **candidate.model_dump())
        self.stores[store.id] = store
        self.keys[store.id] = keys
        return store

    async def get_chain(self, chain_id: str) -> Optional[StoreChain]:
        result = self.chains.get(chain_id)
        await asyncio.sleep(0)
        return result

    async def list_chains(self, active_only: bool = True) -> List[StoreChain]:
        self.chain_lists += 1
        result = [c for c in self.chains.values() if c.is_active or not active_only]
        result.sort(key=lambda c: c.name)
        await asyncio.sleep(0)
        return result

    async def chain_revision(self):
        return self.chain_version


class FakeMappingProvider(MappingProvider):
    """Mapping provider returning canned results, or failing on demand."""

    def __init__(self, geocode: Optional[GeocodeResult] = None, fail: bool = False):
        self.geocode = geocode or GeocodeResult(city="Austin", state="TX")
        self.fail = fail
        self.predictions: List[PlacePrediction] = []
        self.details: Dict[str, PlaceDetails] = {}
        self.geocode_calls = 0

    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        self.geocode_calls += 1
        if self.fail:
            raise ProviderError("Reverse geocoding failed: REQUEST_DENIED")
        return self.geocode

    async def autocomplete(self, text, types=None, location=None, radius_meters=None) -> List[PlacePrediction]:
        if self.fail:
            raise ProviderError("Place autocomplete failed: OVER_QUERY_LIMIT")
        return [p for p in self.predictions if text.lower() in p.description.lower()]

    async def place_details(self, place_id: str) -> Optional[PlaceDetails]:
        if self.fail:
            raise ProviderError("Place details failed: UNKNOWN_ERROR")
        return self.details.get(place_id)


class InMemoryLocationStore(LocationStore):
    def __init__(self, location: Optional[UserLocation] = None):
        self.location = location
        self.saves = 0

    async def load(self) -> Optional[UserLocation]:
        return self.location

    async def save(self, location: UserLocation) -> None:
        self.saves += 1
        self.location = location

    async def clear(self) -> None:
        self.location = None


@pytest.fixture
def repository():
    return InMemoryStoreRepository()


@pytest.fixture
def mapping_provider():
    return FakeMappingProvider()


@pytest.fixture
def location_store():
    return InMemoryLocationStore()


@pytest.fixture
def failing_mapping_provider():
    return FakeMappingProvider(fail=True)


@pytest.fixture
def session_location_stores():
    """Per-session in-memory location stores, created on first use."""
    stores: Dict[str, InMemoryLocationStore] = {}

    def get(session_id: str) -> InMemoryLocationStore:
        return stores.setdefault(session_id, InMemoryLocationStore())

    return get
