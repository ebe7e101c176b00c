"""
Pantry Locator - Chain Normalizer.

Derives the company key that groups store-format variants of one retailer
("Walmart Supercenter", "Walmart Neighborhood Market" -> "walmart") and
resolves the chains related to a given chain through an in-memory index.
"""

import asyncio
import logging
import re
import time
from typing import Dict, Hashable, Iterable, List, Optional, Set

from locator.schemas.store import StoreChain
from locator.services.store_repository import StoreRepository

logger = logging.getLogger(__name__)


_PUNCTUATION = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

# Store-format descriptors removed as whole words; the owning retailer remains
_FORMAT_DESCRIPTORS = re.compile(
    r"\b(supercenter|neighborhood|market|marketplace|fresh|fare|greatland|super|pharmacy|store)\b"
)

# Known brand stylings that collapse into the wrong key otherwise
COMPANY_KEY_OVERRIDES: Dict[str, str] = {
    "wal mart": "walmart",
    "h e b": "h-e-b",
    "heb": "h-e-b",
}


def normalize_company_key(name: Optional[str]) -> str:
    """
    Normalize a chain display name to its company key.

    Args:
        name: Chain display name.

    Returns:
        str: Company key, empty when the name is nothing but descriptors.
    """
    if not name:
        return ""
    raw = name.lower().replace("&", " and ")
    raw = _PUNCTUATION.sub(" ", raw)
    raw = _FORMAT_DESCRIPTORS.sub(" ", raw)
    raw = _WHITESPACE.sub(" ", raw).strip()
    return COMPANY_KEY_OVERRIDES.get(raw, raw)


class CompanyKeyIndex:
    """
    Company key -> chain ids, for active chains only.

    Each chain id maps to exactly one key, so a rename moves the chain
    rather than leaving it listed under its old key.
    """

    def __init__(self):
        self._members: Dict[str, Set[str]] = {}
        self._keys: Dict[str, str] = {}
        self.built_at: Optional[float] = None
        self.revision: Optional[Hashable] = None

    def rebuild(self, chains: Iterable[StoreChain], revision: Optional[Hashable] = None) -> None:
        self._members = {}
        self._keys = {}
        for chain in chains:
            self.upsert(chain)
        self.built_at = time.monotonic()
        self.revision = revision

    def upsert(self, chain: StoreChain) -> None:
        self.discard(chain.id)
        if not chain.is_active:
            return
        key = normalize_company_key(chain.name)
        if not key:
            return
        self._keys[chain.id] = key
        self._members.setdefault(key, set()).add(chain.id)

    def discard(self, chain_id: str) -> None:
        key = self._keys.pop(chain_id, None)
        if key is None:
            return
        members = self._members.get(key)
        if members is not None:
            members.discard(chain_id)
            if not members:
                del self._members[key]

    def members(self, key: str) -> Set[str]:
        return set(self._members.get(key, ()))

    def is_stale(self, ttl_seconds: float) -> bool:
        if self.built_at is None:
            return True
        return time.monotonic() - self.built_at > ttl_seconds

    def __len__(self) -> int:
        return len(self._keys)


class ChainGroupingService:
    """
    Resolves which chains belong to the same company.

    The index is rebuilt from the active chains when the repository's chain
    revision moves or the index is older than the configured TTL, and is
    updated in place through `chain_saved`. Members are re-read before they
    are returned, so a sibling renamed or retired since the last rebuild
    never comes back as related.
    """

    def __init__(
        self,
        repository: StoreRepository,
        index: Optional[CompanyKeyIndex] = None,
        ttl_seconds: float = 300
    ):
        self.repository = repository
        self.index = index or CompanyKeyIndex()
        self.ttl_seconds = ttl_seconds
        self._lock = asyncio.Lock()

    async def refresh(self, force: bool = False) -> None:
        """Rebuild the index from the active chains if stale, changed or forced."""
        async with self._lock:
            revision = await self.repository.chain_revision()
            if (
                not force
                and not self.index.is_stale(self.ttl_seconds)
                and revision == self.index.revision
            ):
                return
            chains = await self.repository.list_chains(active_only=True)
            self.index.rebuild(chains, revision)
            logger.info(f"Company key index rebuilt with {len(self.index)} chains")

    def chain_saved(self, chain: StoreChain) -> None:
        """Reflect a created or edited chain in the index."""
        self.index.upsert(chain)

    async def get_related_chain_ids(self, chain_id: str, include_related: bool) -> Set[str]:
        """
        Get the ids of every chain owned by the same company.

        Args:
            chain_id: Chain to start from.
            include_related: When False only the chain itself is returned.

        Returns:
            Set[str]: Related chain ids including `chain_id`; empty when the
            chain is unknown.
        """
        chain = await self.repository.get_chain(chain_id)
        if chain is None:
            logger.debug(f"Unknown chain id {chain_id!r}, no related chains")
            return set()

        if not include_related:
            return {chain.id}

        key = chain.company_key
        if not key:
            return {chain.id}

        await self.refresh()
        # The target was just read, so its current name wins over the index
        self.index.upsert(chain)

        related = {chain.id}
        for member_id in self.index.members(key) - related:
            current = await self.repository.get_chain(member_id)
            if current is None:
                self.index.discard(member_id)
            elif not current.is_active or current.company_key != key:
                logger.debug(f"Chain {member_id} left company {key!r} since the last rebuild")
                self.index.upsert(current)
            else:
                related.add(member_id)
        return related

    async def get_related_chain_names(self, chain_id: str) -> List[str]:
        """Display names of the related chains, sorted."""
        related = await self.get_related_chain_ids(chain_id, include_related=True)
        names = []
        for related_id in related:
            chain = await self.repository.get_chain(related_id)
            if chain is not None:
                names.append(chain.name)
        return sorted(names)
