"""
HTTP tests for the routers, with in-memory collaborators.
"""
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from locator import dependencies
from locator.routes import availability, chains, location, stores
from locator.schemas.places import PlaceDetails, PlacePrediction
from locator.schemas.store import StoreType
from locator.services.chain_normalizer import ChainGroupingService

SESSION = {"X-Session-Id": "session-1"}


@pytest.fixture
def client(repository, mapping_provider, session_location_stores):
    app = FastAPI()
    app.include_router(chains.router, prefix="/stores/chains")
    app.include_router(stores.router, prefix="/stores")
    app.include_router(location.router, prefix="/location")
    app.include_router(availability.router, prefix="/availability")

    grouping = ChainGroupingService(repository)

    def location_store(session_id: str = Depends(dependencies.get_session_id)):
        return session_location_stores(session_id)

    app.dependency_overrides[dependencies.get_store_repository] = lambda: repository
    app.dependency_overrides[dependencies.get_chain_grouping] = lambda: grouping
    app.dependency_overrides[dependencies.get_mapping_provider] = lambda: mapping_provider
    app.dependency_overrides[dependencies.get_location_store] = location_store

    return TestClient(app)


class TestStoreRoutes:

    def test_create_then_exact_duplicate(self, client, repository):
        payload = {"name": "Green Grocer", "address": "1 Main St", "city": "Springfield", "place_id": "ChIJ1"}

        created = client.post("/stores/", json=payload)
        assert created.status_code == 201
        body = created.json()
        assert body["is_duplicate"] is False
        store_id = body["store"]["id"]

        again = client.post("/stores/", json=payload)
        assert again.status_code == 200
        body = again.json()
        assert body["is_duplicate"] is True
        assert body["duplicate_type"] == "exact"
        assert body["store"]["id"] == store_id
        assert len(repository.stores) == 1

    def test_similar_duplicate(self, client, repository):
        existing = repository.add_store(name="Green Grocer", address="1 Main St", city="Springfield")

        response = client.post("/stores/", json={"name": "Green Grocer", "address": "1 Main St", "city": "Shelbyville"})

        assert response.status_code == 200
        body = response.json()
        assert body["duplicate_type"] == "similar"
        assert body["store"] is None
        assert body["similar_stores"][0]["store"]["id"] == existing.id
        assert body["message"] == "Similar stores found. Please review before creating."

    def test_skip_duplicate_check(self, client, repository):
        repository.add_store(name="Green Grocer", address="1 Main St", city="Springfield")

        response = client.post("/stores/", json={
            "name": "Green Grocer",
            "address": "1 Main St",
            "city": "Shelbyville",
            "skip_duplicate_check": True,
        })

        assert response.status_code == 201
        assert len(repository.stores) == 2

    def test_invalid_store_rejected(self, client):
        response = client.post("/stores/", json={"name": "Green Grocer", "city": "Springfield"})

        assert response.status_code == 400

    def test_classify(self, client, repository):
        repository.add_store(name="Green Grocer", address="1 Main St", city="Springfield")

        response = client.post("/stores/classify", json={"name": "Zenith Foods", "address": "9 Broadway", "city": "Springfield"})

        assert response.status_code == 200
        assert response.json()["classification"] == "none"
        assert len(repository.stores) == 1

    def test_get_store(self, client, repository):
        store = repository.add_store(name="Green Grocer", address="1 Main St")

        assert client.get(f"/stores/{store.id}").json()["name"] == "Green Grocer"
        missing = client.get("/stores/unknown-id")
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Store not found"

    def test_list_by_company(self, client, repository):
        supercenter = repository.add_chain("Walmart Supercenter")
        market = repository.add_chain("Walmart Neighborhood Market")
        repository.add_store(name="Walmart", address="1 Main St", chain_id=supercenter.id)
        repository.add_store(name="Walmart", address="9 Elm St", chain_id=market.id)
        repository.add_store(name="Corner Store", address="5 Oak St")

        exact = client.get("/stores/", params={"chain_id": supercenter.id})
        company = client.get("/stores/", params={"chain_id": supercenter.id, "include_related": True})
        unknown = client.get("/stores/", params={"chain_id": "nope"})

        assert len(exact.json()) == 1
        assert len(company.json()) == 2
        assert unknown.json() == []

    def test_nearby(self, client, repository):
        near = repository.add_store(name="Acme Co.", address="1 Main St", latitude=40.0, longitude=-74.0)
        far = repository.add_store(name="Acme Co.", address="9 Elm St", latitude=40.0, longitude=-74.1)

        five = client.get("/stores/nearby", params={"lat": 40.0, "lng": -74.0, "radius": 5}).json()
        ten = client.get("/stores/nearby", params={"lat": 40.0, "lng": -74.0, "radius": 10}).json()
        everything = client.get("/stores/nearby").json()

        assert [n["store"]["id"] for n in five["stores"]] == [near.id]
        assert five["next_radius_miles"] == 10
        assert [n["store"]["id"] for n in ten["stores"]] == [near.id, far.id]
        assert everything["showing_all"] is True
        assert len(everything["stores"]) == 2

    def test_autocomplete(self, client, mapping_provider):
        mapping_provider.predictions = [
            PlacePrediction(place_id="ChIJ1", description="Green Grocer, Springfield", main_text="Green Grocer")
        ]

        body = client.get("/stores/places/autocomplete", params={"q": "green"}).json()

        assert [p["place_id"] for p in body["predictions"]] == ["ChIJ1"]
        assert body["manual_entry"] is False

    def test_autocomplete_falls_back_to_manual_entry(self, client, mapping_provider):
        mapping_provider.fail = True

        response = client.get("/stores/places/autocomplete", params={"q": "green"})

        assert response.status_code == 200
        assert response.json()["predictions"] == []
        assert response.json()["manual_entry"] is True

    def test_place_details(self, client, mapping_provider):
        mapping_provider.details["ChIJ1"] = PlaceDetails(
            place_id="ChIJ1",
            name="Green Grocer",
            street="1 Main St",
            city="Springfield",
            state="IL",
            latitude=39.78,
            longitude=-89.65,
        )

        body = client.get("/stores/places/details/ChIJ1").json()

        assert body["place"]["city"] == "Springfield"
        assert body["store_candidate"]["address"] == "1 Main St"
        assert body["store_candidate"]["place_id"] == "ChIJ1"
        assert client.get("/stores/places/details/missing").status_code == 404


class TestChainRoutes:

    def test_list_chains_exposes_company_key(self, client, repository):
        repository.add_chain("Walmart Supercenter")

        body = client.get("/stores/chains/").json()

        assert body[0]["company_key"] == "walmart"

    def test_related(self, client, repository):
        supercenter = repository.add_chain("Walmart Supercenter")
        market = repository.add_chain("Walmart Neighborhood Market")
        repository.add_chain("Target")

        body = client.get(f"/stores/chains/{supercenter.id}/related").json()

        assert sorted(body["related_chain_ids"]) == sorted([supercenter.id, market.id])
        assert body["company_key"] == "walmart"
        assert body["related_chain_names"] == ["Walmart Neighborhood Market", "Walmart Supercenter"]

    def test_related_unknown_chain_is_empty(self, client):
        response = client.get("/stores/chains/unknown/related")

        assert response.status_code == 200
        assert response.json()["related_chain_ids"] == []

    def test_get_chain_not_found(self, client):
        assert client.get("/stores/chains/unknown").status_code == 404

    def test_chain_locations(self, client, repository):
        chain = repository.add_chain("Kroger")
        store = repository.add_store(name="Kroger", address="1 Main St", latitude=40.0, longitude=-74.0, chain_id=chain.id)

        body = client.get(f"/stores/chains/{chain.id}/locations", params={"lat": 40.0, "lng": -74.0}).json()

        assert [n["store"]["id"] for n in body["stores"]] == [store.id]
        assert client.get("/stores/chains/unknown/locations").status_code == 404

    @pytest.mark.parametrize("params", [
        {"lat": 100, "lng": 0},
        {"lat": 40.0, "lng": -200},
        {"lat": 40.0, "lng": -74.0, "radius": 0},
        {"expand": -1},
    ])
    def test_chain_locations_rejects_bad_query(self, client, repository, params):
        chain = repository.add_chain("Kroger")

        response = client.get(f"/stores/chains/{chain.id}/locations", params=params)

        assert response.status_code == 422


class TestLocationRoutes:

    def test_session_header_required(self, client):
        assert client.get("/location/").status_code == 400

    def test_select_city_then_read(self, client):
        selected = client.put("/location/city", json={"city": "Houston", "state": "TX"}, headers=SESSION)
        assert selected.json()["display"] == "Houston, TX"

        current = client.get("/location/", headers=SESSION).json()
        assert current["state"] == "resolved"
        assert current["location"]["source"] == "manual"

        other = client.get("/location/", headers={"X-Session-Id": "session-2"}).json()
        assert other["state"] == "uninitialized"

    def test_hydrate_prefers_profile(self, client):
        client.put("/location/city", json={"city": "Houston", "state": "TX"}, headers=SESSION)

        body = client.post(
            "/location/hydrate",
            json={"profile": {"preferred_city": "Austin", "preferred_state": "TX"}},
            headers=SESSION,
        ).json()

        assert body["location"]["source"] == "profile"
        assert body["display"] == "Austin, TX"

    def test_geolocate(self, client):
        body = client.post("/location/geolocate", json={"latitude": 30.2672, "longitude": -97.7431}, headers=SESSION).json()

        assert body["display"] == "Austin, TX"
        assert body["location"]["source"] == "geolocation"

    def test_geolocate_reverse_geocode_failure(self, client, mapping_provider):
        mapping_provider.fail = True

        body = client.post("/location/geolocate", json={"latitude": 30.2672, "longitude": -97.7431}, headers=SESSION).json()

        assert body["display"] == "Your Location"
        assert body["location"]["latitude"] == 30.2672

    def test_geolocate_permission_denied(self, client):
        client.put("/location/city", json={"city": "Houston", "state": "TX"}, headers=SESSION)

        response = client.post("/location/geolocate", json={"error": "permission_denied"}, headers=SESSION)

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "permission_denied"
        assert client.get("/location/", headers=SESSION).json()["display"] == "Houston, TX"

    def test_clear(self, client):
        client.put("/location/city", json={"city": "Houston", "state": "TX"}, headers=SESSION)

        body = client.delete("/location/", headers=SESSION).json()

        assert body["state"] == "uninitialized"
        assert client.get("/location/", headers=SESSION).json()["location"] is None

    def test_geocode_helper(self, client):
        body = client.get("/location/geocode", params={"lat": 30.2672, "lng": -97.7431}).json()

        assert body == {"city": "Austin", "state": "TX"}


class TestAvailabilityRoutes:

    def test_grouped(self, client, repository):
        chain = repository.add_chain("Kroger")
        kroger = repository.add_store(name="Kroger", address="1 Main St", city="Austin", chain_id=chain.id)
        online = repository.add_store(name="Thrive Market", type=StoreType.ONLINE_RETAILER, region_or_scope="US")
        corner = repository.add_store(name="Corner Store", address="5 Oak St", city="Austin")

        body = client.post("/availability/grouped", json={
            "stores": [
                {"store_id": kroger.id},
                {"store_id": online.id, "price": "$4.99"},
                {"store_id": corner.id},
                {"store_id": "unknown"},
            ],
            "chains": [{"chain_id": chain.id, "price_range": "$3-$5"}],
        }).json()

        assert body["chain_groups"][0]["chain_name"] == "Kroger"
        assert body["chain_groups"][0]["location_count"] == 1
        assert body["chain_groups"][0]["chain_wide"]["price_range"] == "$3-$5"
        assert [l["availability"]["store"]["id"] for l in body["online"]] == [online.id]
        assert [l["availability"]["store"]["id"] for l in body["independent"]] == [corner.id]
