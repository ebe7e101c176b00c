"""
Pantry Locator - Location Resolver.

Owns the single active location of one session. States:

    UNINITIALIZED --hydrate/select_city/geolocate--> RESOLVED(source)
    RESOLVED      --geolocation failure-----------> ERROR (previous location kept)
    any           --clear-------------------------> UNINITIALIZED

Every resolution replaces the previous location and is written to the
session's LocationStore. Geolocation requests are sequenced, and the store
is re-read before a geolocation result is saved; a response that arrives
after a newer action, by this request or another one on the same session,
is dropped.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from locator.integrations.geolocation import DeviceGeolocation, GeolocationOptions
from locator.integrations.maps import MappingProvider
from locator.schemas.location import (
    PLACEHOLDER_CITY,
    GeocodeResult,
    LocationResponse,
    LocationSource,
    ProfileLocation,
    ResolverState,
    UserLocation,
)
from locator.services.cache import CacheService
from locator.utils.errors import CapabilityError, GeolocationFailure, ProviderError

logger = logging.getLogger(__name__)


class LocationStore(ABC):
    """Persistence for a session's chosen location."""

    @abstractmethod
    async def load(self) -> Optional[UserLocation]:
        pass

    @abstractmethod
    async def save(self, location: UserLocation) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


class RedisLocationStore(LocationStore):
    """Session location kept in Redis under `location:<session id>`."""

    def __init__(self, cache: CacheService, session_id: str, ttl_seconds: int = 2592000):
        self.cache = cache
        self.key = f"location:{session_id}"
        self.ttl_seconds = ttl_seconds

    async def load(self) -> Optional[UserLocation]:
        data = await self.cache.get(self.key)
        if not data:
            return None
        try:
            return UserLocation(**data)
        except ValueError as e:
            logger.warning(f"Discarding unreadable stored location {self.key}: {e}")
            await self.cache.delete(self.key)
            return None

    async def save(self, location: UserLocation) -> None:
        saved = await self.cache.set(self.key, location.model_dump(mode="json"), self.ttl_seconds)
        if not saved:
            logger.warning(f"Session location {self.key} not persisted; it will not survive this request")

    async def clear(self) -> None:
        if not await self.cache.delete(self.key):
            logger.warning(f"Session location {self.key} could not be cleared")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LocationResolver:
    """
    Resolves and holds the active UserLocation of a session.

    Collaborators are injected so the resolver can run against a browser
    client, a test double or no geolocation capability at all.

    Attributes:
        state: Current ResolverState.
        location: Active location; kept through geolocation failures.
        error: Reason of the last geolocation failure while in ERROR.
    """

    def __init__(
        self,
        geolocation: DeviceGeolocation,
        geocoder: Optional[MappingProvider],
        store: LocationStore,
        options: Optional[GeolocationOptions] = None
    ):
        self.geolocation = geolocation
        self.geocoder = geocoder
        self.store = store
        self.options = options or GeolocationOptions()
        self.state = ResolverState.UNINITIALIZED
        self.location: Optional[UserLocation] = None
        self.error: Optional[GeolocationFailure] = None
        self._sequence = 0
        self._user_acted = False

    @property
    def display(self) -> str:
        return self.location.display if self.location else ""

    def snapshot(self) -> LocationResponse:
        return LocationResponse(
            state=self.state,
            location=self.location,
            display=self.display,
            error=self.error,
        )

    def _activate(self, location: UserLocation) -> UserLocation:
        self.location = location
        self.state = ResolverState.RESOLVED
        self.error = None
        return location

    async def _resolve(self, location: UserLocation) -> UserLocation:
        self._activate(location)
        await self.store.save(location)
        logger.info(f"Location resolved to {location.display!r} ({location.source.value})")
        return location

    async def restore(self) -> Optional[UserLocation]:
        """Load the session's stored location without treating it as a user action."""
        stored = await self.store.load()
        if stored is not None:
            self._activate(stored)
        return stored

    async def load_from_profile(self, profile: Optional[ProfileLocation]) -> bool:
        """
        Resolve from a saved profile.

        Only applies before any explicit user action; a profile without both
        city and state is ignored.
        """
        if self._user_acted or profile is None:
            return False
        if not (profile.preferred_city and profile.preferred_state):
            return False
        await self._resolve(UserLocation(
            city=profile.preferred_city,
            state=profile.preferred_state,
            latitude=profile.latitude,
            longitude=profile.longitude,
            source=LocationSource.PROFILE,
        ))
        return True

    def load_from_persisted_choice(self, stored: Optional[UserLocation]) -> bool:
        """Fall back to a previously saved session choice when nothing is active yet."""
        if self._user_acted or self.location is not None or stored is None:
            return False
        self._activate(stored)
        return True

    async def hydrate(self, profile: Optional[ProfileLocation] = None) -> LocationResponse:
        """Initial session load: profile first, then the stored session choice."""
        if not await self.load_from_profile(profile):
            self.load_from_persisted_choice(await self.store.load())
        return self.snapshot()

    async def select_city(self, city: str, state: str) -> UserLocation:
        """Manual pick; carries no coordinates."""
        self._user_acted = True
        self._sequence += 1
        return await self._resolve(UserLocation(
            city=city.strip(),
            state=state.strip(),
            source=LocationSource.MANUAL,
        ))

    async def clear(self) -> None:
        self._user_acted = True
        self._sequence += 1
        self.location = None
        self.error = None
        self.state = ResolverState.UNINITIALIZED
        await self.store.clear()

    def cancel_pending(self) -> None:
        """Make any in-flight geolocation request stale."""
        self._sequence += 1

    def _is_stale(self, sequence: int, issued_at: Optional[datetime]) -> bool:
        if sequence != self._sequence:
            return True
        if issued_at is not None and self.location is not None:
            return _as_utc(self.location.resolved_at) > _as_utc(issued_at)
        return False

    async def _superseded(
        self,
        baseline: Optional[UserLocation],
        issued_at: Optional[datetime]
    ) -> bool:
        """
        Re-read the session store after the slow calls.

        Another request on the same session may have saved or cleared while
        this one waited on the device or the geocoder. When it did, the
        resolver adopts that state and the response must be dropped.
        """
        current = await self.store.load()
        if current is None:
            superseded = baseline is not None and issued_at is None
        elif issued_at is not None:
            superseded = _as_utc(current.resolved_at) > _as_utc(issued_at)
        else:
            superseded = baseline is None or _as_utc(current.resolved_at) > _as_utc(baseline.resolved_at)

        if superseded:
            if current is None:
                self.location = None
                self.error = None
                self.state = ResolverState.UNINITIALIZED
            else:
                self._activate(current)
        return superseded

    async def _reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        if self.geocoder is None:
            return GeocodeResult()
        try:
            return await self.geocoder.reverse_geocode(latitude, longitude)
        except ProviderError as e:
            logger.warning(f"Reverse geocoding failed, keeping coordinates only: {e.message}")
            return GeocodeResult()

    async def request_geolocation(self, issued_at: Optional[datetime] = None) -> Optional[UserLocation]:
        """
        Resolve from the device position.

        Args:
            issued_at: When the client started the request. A location that
                was resolved after this instant wins over the response.

        Returns:
            Optional[UserLocation]: The active location. A stale response
            leaves it untouched.

        Raises:
            CapabilityError: Permission denied, unavailable, timeout or
                unsupported. The resolver moves to ERROR and keeps the
                previous location.
        """
        self._user_acted = True
        self._sequence += 1
        sequence = self._sequence
        baseline = self.location

        try:
            coords = await asyncio.wait_for(
                self.geolocation.get_current_position(self.options),
                timeout=self.options.timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = CapabilityError(GeolocationFailure.TIMEOUT)
            return self._fail(error, sequence, issued_at)
        except CapabilityError as e:
            return self._fail(e, sequence, issued_at)

        geocoded = await self._reverse_geocode(coords.latitude, coords.longitude)

        if self._is_stale(sequence, issued_at):
            logger.info("Dropping stale geolocation response")
            return self.location

        if await self._superseded(baseline, issued_at):
            logger.info("Dropping geolocation response; the session location changed meanwhile")
            return self.location

        if geocoded.city:
            city, state = geocoded.city, geocoded.state or ""
        else:
            city, state = PLACEHOLDER_CITY, ""

        return await self._resolve(UserLocation(
            city=city,
            state=state,
            latitude=coords.latitude,
            longitude=coords.longitude,
            source=LocationSource.GEOLOCATION,
        ))

    def _fail(
        self,
        error: CapabilityError,
        sequence: int,
        issued_at: Optional[datetime]
    ) -> Optional[UserLocation]:
        if self._is_stale(sequence, issued_at):
            logger.info(f"Dropping stale geolocation failure: {error.reason.value}")
            return self.location
        logger.warning(f"Geolocation failed: {error.reason.value}")
        self.state = ResolverState.ERROR
        self.error = error.reason
        raise error
