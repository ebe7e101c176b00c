"""
Pantry Locator - Mapping Provider Integration.

Narrow interface over the external mapping service:
- Reverse geocoding (coordinates -> city/state)
- Place autocomplete (free text -> ranked predictions)
- Place details (place id -> address, coordinates, website)

The Google Maps web services adapter is the production implementation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from locator.schemas.location import GeocodeResult
from locator.schemas.places import PlaceDetails, PlacePrediction
from locator.schemas.store import Coordinates
from locator.services.cache import CacheService
from locator.utils.errors import ProviderError

logger = logging.getLogger(__name__)

MIN_AUTOCOMPLETE_LENGTH = 2

DETAILS_FIELDS = ",".join([
    "place_id",
    "name",
    "formatted_address",
    "geometry",
    "website",
    "formatted_phone_number",
    "address_components",
])


class MappingProvider(ABC):
    """Base class for mapping provider integrations."""

    @abstractmethod
    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        """
        Resolve a coordinate to a best-effort city/state.

        Raises:
            ProviderError: If the provider cannot be reached or rejects the call.
        """
        pass

    @abstractmethod
    async def autocomplete(
        self,
        text: str,
        types: Optional[List[str]] = None,
        location: Optional[Coordinates] = None,
        radius_meters: Optional[int] = None
    ) -> List[PlacePrediction]:
        """Ranked place predictions for free text."""
        pass

    @abstractmethod
    async def place_details(self, place_id: str) -> Optional[PlaceDetails]:
        """Structured details for a place id, or None if the place is unknown."""
        pass


def parse_address_components(components: Optional[List[Dict[str, Any]]]) -> Dict[str, str]:
    """
    Flatten provider address components.

    Returns:
        Dict with any of street, city, state, postal_code, country.
    """
    result: Dict[str, str] = {}
    for component in components or []:
        types = component.get("types", [])
        if "street_number" in types:
            result["street"] = component.get("long_name", "")
        if "route" in types:
            route = component.get("long_name", "")
            result["street"] = f"{result['street']} {route}" if result.get("street") else route
        if "locality" in types:
            result["city"] = component.get("long_name", "")
        if "administrative_area_level_1" in types:
            result["state"] = component.get("short_name", "")
        if "postal_code" in types:
            result["postal_code"] = component.get("long_name", "")
        if "country" in types:
            result["country"] = component.get("short_name", "")
    return result


def parse_reverse_geocode(results: List[Dict[str, Any]]) -> GeocodeResult:
    """
    Pick city and state out of reverse-geocoding results.

    City comes from locality/sublocality, falling back to county or
    neighborhood; state is the administrative_area_level_1 short name.
    """
    city = ""
    state = ""
    for result in results:
        for component in result.get("address_components", []):
            types = component.get("types", [])
            if not city and (
                "locality" in types
                or "sublocality" in types
                or "sublocality_level_1" in types
            ):
                city = component.get("long_name", "")
            if not state and "administrative_area_level_1" in types:
                state = component.get("short_name", "")
        if city and state:
            break

    if not city:
        for result in results:
            for component in result.get("address_components", []):
                types = component.get("types", [])
                if "administrative_area_level_2" in types or "neighborhood" in types:
                    city = component.get("long_name", "")
                    break
            if city:
                break

    return GeocodeResult(city=city or None, state=state or None)


class GoogleMapsProvider(MappingProvider):
    """
    Google Maps web services integration.

    API Docs: https://developers.google.com/maps/documentation
    Features: Geocoding, Places Autocomplete, Place Details
    """

    GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
    PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[CacheService] = None,
        geocode_ttl_seconds: int = 86400,
        details_ttl_seconds: int = 86400
    ):
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._client = client
        self.cache = cache
        self.geocode_ttl_seconds = geocode_ttl_seconds
        self.details_ttl_seconds = details_ttl_seconds

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET a provider endpoint and return its JSON body."""
        if not self.api_key:
            raise ProviderError("Mapping provider not configured", detail="GOOGLE_API_KEY is not set")

        params = {**params, "key": self.api_key}
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, timeout=self.timeout_seconds)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Mapping provider request failed: {e}")
            raise ProviderError("Mapping provider unreachable", detail=str(e)) from e

        if response.status_code != 200:
            logger.error(f"Mapping provider HTTP error: {response.status_code}")
            raise ProviderError(f"Mapping provider error: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError("Mapping provider returned invalid JSON", detail=str(e)) from e

    @staticmethod
    def _check_status(data: Dict[str, Any], operation: str) -> bool:
        """
        Validate the provider status field.

        Returns:
            bool: False for ZERO_RESULTS, True for OK.

        Raises:
            ProviderError: For any other status.
        """
        status = data.get("status")
        if status == "OK":
            return True
        if status == "ZERO_RESULTS":
            return False
        message = data.get("error_message") or "Unknown error"
        if status == "REQUEST_DENIED":
            logger.error(f"{operation}: API key may be invalid or missing required permissions")
        raise ProviderError(f"{operation} failed: {status}", detail=message)

    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        """Reverse geocode a coordinate, caching by ~100m cell."""
        cache_key = CacheService.generate_key(
            "geocode", {"lat": round(latitude, 3), "lng": round(longitude, 3)}
        )
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached:
                return GeocodeResult(**cached)

        data = await self._get_json(self.GEOCODE_URL, {"latlng": f"{latitude},{longitude}"})
        if not self._check_status(data, "Reverse geocoding") or not data.get("results"):
            return GeocodeResult()

        result = parse_reverse_geocode(data["results"])
        if self.cache is not None and result.city:
            await self.cache.set(cache_key, result.model_dump(), self.geocode_ttl_seconds)
        return result

    async def autocomplete(
        self,
        text: str,
        types: Optional[List[str]] = None,
        location: Optional[Coordinates] = None,
        radius_meters: Optional[int] = None
    ) -> List[PlacePrediction]:
        """Search for places using Places Autocomplete."""
        if not text or len(text.strip()) < MIN_AUTOCOMPLETE_LENGTH:
            return []

        params: Dict[str, Any] = {
            "input": text.strip(),
            # Establishments (stores, businesses) unless the caller narrows it
            "types": "|".join(types) if types else "establishment",
        }
        if location is not None and radius_meters:
            params["location"] = f"{location.latitude},{location.longitude}"
            params["radius"] = str(radius_meters)

        data = await self._get_json(f"{self.PLACES_BASE_URL}/autocomplete/json", params)
        if not self._check_status(data, "Place autocomplete"):
            return []

        predictions = []
        for pred in data.get("predictions", []):
            description = pred.get("description", "")
            formatting = pred.get("structured_formatting") or {}
            parts = description.split(",")
            predictions.append(PlacePrediction(
                place_id=pred["place_id"],
                description=description,
                main_text=formatting.get("main_text") or parts[0],
                secondary_text=formatting.get("secondary_text") or ",".join(parts[1:]).strip(),
            ))
        return predictions

    async def place_details(self, place_id: str) -> Optional[PlaceDetails]:
        """Get place details by place id."""
        if not place_id or not place_id.strip():
            return None

        cache_key = f"place_details:{place_id.strip()}"
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached:
                return PlaceDetails(**cached)

        data = await self._get_json(
            f"{self.PLACES_BASE_URL}/details/json",
            {"place_id": place_id.strip(), "fields": DETAILS_FIELDS},
        )
        if data.get("status") in ("NOT_FOUND", "INVALID_REQUEST"):
            logger.warning(f"Place {place_id!r} not found: {data.get('status')}")
            return None
        if not self._check_status(data, "Place details") or not data.get("result"):
            return None

        result = data["result"]
        location = (result.get("geometry") or {}).get("location") or {}
        details = PlaceDetails(
            place_id=result.get("place_id", place_id),
            name=result.get("name", ""),
            formatted_address=result.get("formatted_address", ""),
            website=result.get("website"),
            phone_number=result.get("formatted_phone_number"),
            latitude=location.get("lat"),
            longitude=location.get("lng"),
            **parse_address_components(result.get("address_components")),
        )
        if self.cache is not None:
            await self.cache.set(cache_key, details.model_dump(), self.details_ttl_seconds)
        return details
