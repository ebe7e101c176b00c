"""
Tests for the Google Maps adapter against a mocked transport.
"""
import httpx
import pytest

from locator.integrations.maps import (
    GoogleMapsProvider,
    parse_address_components,
    parse_reverse_geocode,
)
from locator.schemas.store import StoreType
from locator.utils.errors import ProviderError

AUSTIN_COMPONENTS = [
    {"long_name": "301", "short_name": "301", "types": ["street_number"]},
    {"long_name": "Congress Avenue", "short_name": "Congress Ave", "types": ["route"]},
    {"long_name": "Austin", "short_name": "Austin", "types": ["locality", "political"]},
    {"long_name": "Travis County", "short_name": "Travis County", "types": ["administrative_area_level_2", "political"]},
    {"long_name": "Texas", "short_name": "TX", "types": ["administrative_area_level_1", "political"]},
    {"long_name": "United States", "short_name": "US", "types": ["country", "political"]},
    {"long_name": "78701", "short_name": "78701", "types": ["postal_code"]},
]


def provider_for(handler, api_key="test-key", cache=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleMapsProvider(api_key=api_key, client=client, cache=cache)


class FakeCache:

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ttl_seconds=3600):
        self.data[key] = value
        return True


class TestParsing:

    def test_address_components(self):
        parsed = parse_address_components(AUSTIN_COMPONENTS)

        assert parsed == {
            "street": "301 Congress Avenue",
            "city": "Austin",
            "state": "TX",
            "postal_code": "78701",
            "country": "US",
        }

    def test_address_components_empty(self):
        assert parse_address_components(None) == {}

    def test_reverse_geocode_locality(self):
        result = parse_reverse_geocode([{"address_components": AUSTIN_COMPONENTS}])

        assert result.city == "Austin"
        assert result.state == "TX"

    def test_reverse_geocode_county_fallback(self):
        components = [c for c in AUSTIN_COMPONENTS if "locality" not in c["types"]]

        result = parse_reverse_geocode([{"address_components": components}])

        assert result.city == "Travis County"
        assert result.state == "TX"

    def test_reverse_geocode_nothing(self):
        result = parse_reverse_geocode([])

        assert result.city is None
        assert result.state is None


class TestReverseGeocode:

    async def test_success(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json={"status": "OK", "results": [{"address_components": AUSTIN_COMPONENTS}]})

        result = await provider_for(handler).reverse_geocode(30.2672, -97.7431)

        assert result.city == "Austin"
        assert seen["latlng"] == "30.2672,-97.7431"
        assert seen["key"] == "test-key"

    async def test_zero_results(self):
        provider = provider_for(lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}))

        result = await provider.reverse_geocode(0.0, 0.0)

        assert result.city is None

    async def test_denied_raises(self):
        provider = provider_for(
            lambda r: httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key"})
        )

        with pytest.raises(ProviderError) as exc:
            await provider.reverse_geocode(30.0, -97.0)
        assert exc.value.detail == "bad key"
        assert exc.value.status_code == 502

    async def test_http_error_raises(self):
        provider = provider_for(lambda r: httpx.Response(500))

        with pytest.raises(ProviderError):
            await provider.reverse_geocode(30.0, -97.0)

    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        with pytest.raises(ProviderError):
            await provider_for(handler).reverse_geocode(30.0, -97.0)

    async def test_not_configured(self):
        provider = provider_for(lambda r: httpx.Response(200), api_key=None)

        with pytest.raises(ProviderError):
            await provider.reverse_geocode(30.0, -97.0)

    async def test_cached(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"status": "OK", "results": [{"address_components": AUSTIN_COMPONENTS}]})

        provider = provider_for(handler, cache=FakeCache())
        await provider.reverse_geocode(30.2672, -97.7431)
        result = await provider.reverse_geocode(30.2671, -97.7432)

        assert result.city == "Austin"
        assert len(calls) == 1


class TestAutocomplete:

    async def test_short_input_skips_provider(self):
        def handler(request):
            raise AssertionError("provider should not be called")

        assert await provider_for(handler).autocomplete("a") == []
        assert await provider_for(handler).autocomplete("  ") == []

    async def test_predictions(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json={
                "status": "OK",
                "predictions": [
                    {
                        "place_id": "ChIJ1",
                        "description": "Green Grocer, Main Street, Springfield, IL, USA",
                        "structured_formatting": {"main_text": "Green Grocer", "secondary_text": "Main Street, Springfield, IL, USA"},
                    },
                    {"place_id": "ChIJ2", "description": "Green Grocer Express, Springfield, IL"},
                ],
            })

        predictions = await provider_for(handler).autocomplete("green grocer")

        assert seen["types"] == "establishment"
        assert [p.place_id for p in predictions] == ["ChIJ1", "ChIJ2"]
        assert predictions[0].main_text == "Green Grocer"
        assert predictions[1].main_text == "Green Grocer Express"
        assert predictions[1].secondary_text == "Springfield, IL"

    async def test_zero_results(self):
        provider = provider_for(lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS", "predictions": []}))

        assert await provider.autocomplete("zzzz") == []

    async def test_over_quota_raises(self):
        provider = provider_for(lambda r: httpx.Response(200, json={"status": "OVER_QUERY_LIMIT"}))

        with pytest.raises(ProviderError):
            await provider.autocomplete("green grocer")


class TestPlaceDetails:

    async def test_details_to_store_candidate(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json={
                "status": "OK",
                "result": {
                    "place_id": "ChIJ1",
                    "name": "Green Grocer",
                    "formatted_address": "301 Congress Ave, Austin, TX 78701, USA",
                    "geometry": {"location": {"lat": 30.2669, "lng": -97.7428}},
                    "website": "https://greengrocer.example",
                    "formatted_phone_number": "(512) 555-0100",
                    "address_components": AUSTIN_COMPONENTS,
                },
            })

        details = await provider_for(handler).place_details("ChIJ1")

        assert "address_components" in seen["fields"]
        assert details.city == "Austin"
        assert details.latitude == 30.2669
        candidate = details.to_store_input(chain_id="chain-1")
        assert candidate.type is StoreType.PHYSICAL
        assert candidate.address == "301 Congress Avenue"
        assert candidate.place_id == "ChIJ1"
        assert candidate.website_url == "https://greengrocer.example"
        assert candidate.chain_id == "chain-1"
        assert candidate.coordinates is not None

    async def test_unknown_place(self):
        provider = provider_for(lambda r: httpx.Response(200, json={"status": "NOT_FOUND"}))

        assert await provider.place_details("missing") is None

    async def test_blank_place_id(self):
        def handler(request):
            raise AssertionError("provider should not be called")

        assert await provider_for(handler).place_details("  ") is None
