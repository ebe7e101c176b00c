"""
Pantry Locator - Store Deduplicator.

Decides whether a submitted store is an existing store (exact), might be
one (similar, needs a human decision) or is new (none), and performs the
guarded insert for new stores.

Matching policy:
    1. Exact: same place id, or same exact-match key. The key is
       name + street + city for physical stores (name + coordinates rounded
       to 4 decimals when there is no street), and name + region for
       online/brand-direct stores.
    2. Similar: score >= threshold, where
       score = 0.7 * name score + 0.3 * location score.
    3. None: safe to insert.

Two concurrent submissions of one store can both classify as new. The
unique indexes reject the second insert and the loser is re-classified as
an exact match of the winner.
"""

import logging
from difflib import SequenceMatcher
from typing import List, Optional

from locator.schemas.store import (
    DuplicateCandidate,
    DuplicateClassification,
    Store,
    StoreCreationResult,
    StoreInput,
    StoreMatch,
    StoreType,
)
from locator.services.proximity import distance_miles
from locator.services.store_repository import StoreKeys, StoreRepository
from locator.utils.errors import ConflictError, ValidationError
from locator.utils.text import (
    name_tokens,
    normalize_address,
    normalize_place,
    normalize_store_name,
)

logger = logging.getLogger(__name__)


NAME_WEIGHT = 0.7
LOCATION_WEIGHT = 0.3
CONTAINMENT_SCORE = 0.9
DEFAULT_SIMILARITY_THRESHOLD = 0.6
DEFAULT_MAX_CANDIDATES = 5
DEFAULT_LOCATION_RADIUS_MILES = 25.0


def validate_candidate(candidate: StoreInput) -> None:
    """
    Reject candidates missing the fields their type requires.

    Raises:
        ValidationError: If the candidate is malformed.
    """
    if not candidate.name or not candidate.name.strip():
        raise ValidationError("Store name is required")
    if not normalize_store_name(candidate.name):
        raise ValidationError(
            "Store name is invalid",
            detail="Store name must contain letters or digits",
        )
    if (candidate.latitude is None) != (candidate.longitude is None):
        raise ValidationError(
            "Incomplete coordinates",
            detail="latitude and longitude must be provided together",
        )
    if candidate.type is StoreType.PHYSICAL:
        has_address = bool(candidate.address and candidate.address.strip())
        if not has_address and candidate.coordinates is None:
            raise ValidationError(
                "Physical store needs a location",
                detail="Provide a street address or coordinates for a physical store",
            )


def exact_match_key(candidate: StoreInput) -> Optional[str]:
    """Key under which two records are provably the same store."""
    name_key = normalize_store_name(candidate.name)
    if not name_key:
        return None

    if candidate.type.is_online:
        return f"online|{name_key}|{normalize_place(candidate.region_or_scope)}"

    street = normalize_address(candidate.address)
    if street:
        return f"physical|{name_key}|{street}|{normalize_place(candidate.city)}"

    coords = candidate.coordinates
    if coords is not None:
        return f"physical|{name_key}|@{coords.latitude:.4f},{coords.longitude:.4f}"
    return None


def derive_store_keys(candidate: StoreInput) -> StoreKeys:
    """Normalized lookup keys stored alongside a store."""
    return StoreKeys(
        name_key=normalize_store_name(candidate.name),
        name_tokens=name_tokens(candidate.name),
        city_key=normalize_place(candidate.city),
        match_key=exact_match_key(candidate),
    )


def name_similarity(a: str, b: str) -> float:
    """
    Similarity of two normalized store names in [0, 1].

    Maximum of the sequence ratio, the token Jaccard overlap, and a fixed
    0.9 when one name appears as whole words inside the other.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    ratio = SequenceMatcher(None, a, b).ratio()

    tokens_a, tokens_b = set(a.split(" ")), set(b.split(" "))
    jaccard = len(tokens_a & tokens_b) / len(tokens_a | tokens_b)

    contained = f" {a} " in f" {b} " or f" {b} " in f" {a} "
    return max(ratio, jaccard, CONTAINMENT_SCORE if contained else 0.0)


def _postal_prefix(value: Optional[str]) -> str:
    return (value or "").strip().replace(" ", "").upper()[:5]


def location_similarity(
    candidate: StoreInput,
    store: Store,
    radius_miles: float = DEFAULT_LOCATION_RADIUS_MILES
) -> float:
    """
    Similarity of two store locations in [0, 1].

    Same region (online), same postal code or same city (physical) scores 1.
    Otherwise physical stores with coordinates decay linearly to 0 at
    `radius_miles`.
    """
    if candidate.type.is_online:
        region = normalize_place(candidate.region_or_scope)
        return 1.0 if region and region == normalize_place(store.region_or_scope) else 0.0

    postal_a, postal_b = _postal_prefix(candidate.postal_code), _postal_prefix(store.postal_code)
    if postal_a and postal_a == postal_b:
        return 1.0

    city_a, city_b = normalize_place(candidate.city), normalize_place(store.city)
    if city_a and city_a == city_b:
        state_a, state_b = normalize_place(candidate.state), normalize_place(store.state)
        if not state_a or not state_b or state_a == state_b:
            return 1.0

    origin, target = candidate.coordinates, store.coordinates
    if origin is not None and target is not None and radius_miles > 0:
        miles = distance_miles(origin.latitude, origin.longitude, target.latitude, target.longitude)
        return max(0.0, 1.0 - miles / radius_miles)
    return 0.0


def score_match(
    candidate: StoreInput,
    store: Store,
    radius_miles: float = DEFAULT_LOCATION_RADIUS_MILES
) -> StoreMatch:
    """Score a known store against a candidate."""
    name_score = name_similarity(
        normalize_store_name(candidate.name),
        normalize_store_name(store.name),
    )
    location_score = location_similarity(candidate, store, radius_miles)
    return StoreMatch(
        store=store,
        score=NAME_WEIGHT * name_score + LOCATION_WEIGHT * location_score,
        name_score=name_score,
        location_score=location_score,
    )


def meets_similarity_threshold(score: float, threshold: float) -> bool:
    """A candidate is similar when its score reaches the threshold (inclusive)."""
    return score >= threshold


class StoreDeduplicator:
    """
    Classifies store candidates and inserts new stores.

    Attributes:
        repository: Store persistence.
        similarity_threshold: Minimum score for a `similar` candidate.
        max_candidates: Maximum number of similar candidates returned.
        location_radius_miles: Distance at which location similarity reaches 0.
    """

    def __init__(
        self,
        repository: StoreRepository,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        location_radius_miles: float = DEFAULT_LOCATION_RADIUS_MILES
    ):
        self.repository = repository
        self.similarity_threshold = similarity_threshold
        self.max_candidates = max_candidates
        self.location_radius_miles = location_radius_miles

    async def find_exact(
        self,
        candidate: StoreInput,
        keys: Optional[StoreKeys] = None
    ) -> Optional[Store]:
        """Existing store that is provably the candidate, if any."""
        if candidate.place_id:
            store = await self.repository.find_by_place_id(candidate.place_id)
            if store is not None:
                return store

        keys = keys or derive_store_keys(candidate)
        if keys.match_key:
            return await self.repository.find_by_match_key(keys.match_key)
        return None

    async def find_similar(
        self,
        candidate: StoreInput,
        keys: Optional[StoreKeys] = None
    ) -> List[StoreMatch]:
        """Known stores scoring at or above the threshold, best first."""
        keys = keys or derive_store_keys(candidate)
        stores = await self.repository.find_match_candidates(
            keys, online=candidate.type.is_online
        )

        matches = []
        for store in stores:
            match = score_match(candidate, store, self.location_radius_miles)
            if meets_similarity_threshold(match.score, self.similarity_threshold):
                matches.append(match)

        matches.sort(key=lambda m: (-m.score, -m.name_score, m.store.name, m.store.id))
        return matches[:self.max_candidates]

    async def classify(self, candidate: StoreInput) -> DuplicateCandidate:
        """
        Classify a candidate against the known stores.

        Args:
            candidate: Submitted store.

        Returns:
            DuplicateCandidate: exact (with the store), similar (with ranked
            candidates) or none.

        Raises:
            ValidationError: If the candidate is malformed.
        """
        validate_candidate(candidate)
        return await self._classify(candidate, derive_store_keys(candidate))

    async def _classify(self, candidate: StoreInput, keys: StoreKeys) -> DuplicateCandidate:
        existing = await self.find_exact(candidate, keys)
        if existing is not None:
            logger.info(f"Exact duplicate for {candidate.name!r}: store {existing.id}")
            return DuplicateCandidate.exact(existing)

        similar = await self.find_similar(candidate, keys)
        if similar:
            logger.info(f"{len(similar)} similar stores for {candidate.name!r}")
            return DuplicateCandidate.similar(similar)

        return DuplicateCandidate.none()

    async def create(
        self,
        candidate: StoreInput,
        skip_duplicate_check: bool = False
    ) -> StoreCreationResult:
        """
        Create a store unless it duplicates a known one.

        Args:
            candidate: Submitted store.
            skip_duplicate_check: Administrative override that skips the
                exact/similar classification. The storage uniqueness
                constraint still applies.

        Returns:
            StoreCreationResult: The created store, or the duplicate
            classification that prevented creation.

        Raises:
            ValidationError: If the candidate is malformed.
            ConflictError: If the insert collides and the colliding store
                cannot be read back.
        """
        validate_candidate(candidate)

        if candidate.chain_id and await self.repository.get_chain(candidate.chain_id) is None:
            logger.warning(f"Unknown chain {candidate.chain_id!r} on new store {candidate.name!r}, dropping it")
            candidate = candidate.model_copy(update={"chain_id": None})

        keys = derive_store_keys(candidate)

        if not skip_duplicate_check:
            result = await self._classify(candidate, keys)
            if result.classification is not DuplicateClassification.NONE:
                return StoreCreationResult(duplicate=result)

        try:
            store = await self.repository.insert_store(candidate, keys)
        except ConflictError:
            existing = await self.find_exact(candidate, keys)
            if existing is None:
                logger.error(f"Insert conflict for {candidate.name!r} but no matching store found")
                raise
            logger.info(f"Concurrent insert for {candidate.name!r} resolved to existing store {existing.id}")
            return StoreCreationResult(duplicate=DuplicateCandidate.exact(existing))

        logger.info(f"Created store {store.id} ({store.name})")
        return StoreCreationResult(created=store)
