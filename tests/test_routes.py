import pytest
from fastapi.testclient import TestClient

from cache import TTLCache
from dependencies import (
    get_classifier,
    get_geocoder,
    get_home_engine,
    get_label_cache,
    get_matching_service,
    get_ranking_service,
    get_stores,
)
from fakes import FakeAdStore, FakeCollectionStore, FakeGeocoder, FakeStores, geocoded
from main import app
from routes.ads import ad_summary
from services.geocoding import GeocodingError
from services.home_engine import HomeDynamicEngine
from services.worker_matching import WorkerMatchingService
from services.worker_ranking import WorkerRankingService
from services.zone_classifier import GeoZoneClassifier

ADS = [{"_id": f"ad{n}", "title": f"Велосипед {n}", "photos": ["a.jpg"], "_km": 0.2} for n in range(5)]


@pytest.fixture
def stores():
    return FakeStores(
        ads=FakeAdStore(ADS),
        workers=FakeCollectionStore([{"_id": "w1", "name": "Иван", "categories": ["plumber"], "rating": 4.5}]),
    )


@pytest.fixture
def client(stores):
    classifier = GeoZoneClassifier(
        FakeGeocoder(geocoded(city="Минск")), FakeAdStore(counts={"total": 4000}), TTLCache(1800, 1000)
    )
    app.dependency_overrides[get_stores] = lambda: stores
    app.dependency_overrides[get_classifier] = lambda: classifier
    app.dependency_overrides[get_home_engine] = lambda: HomeDynamicEngine(classifier, stores, TTLCache(300, 500))
    app.dependency_overrides[get_geocoder] = lambda: FakeGeocoder({"label": "Немига, Минск", "city": "Минск"})
    app.dependency_overrides[get_matching_service] = lambda: WorkerMatchingService(stores)
    app.dependency_overrides[get_ranking_service] = lambda: WorkerRankingService(stores)
    labels = TTLCache(1800, 1000)
    app.dependency_overrides[get_label_cache] = lambda: labels
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_home_config_returns_city_layout(client):
    response = client.get("/api/home-config", params={"lat": 53.9, "lng": 27.56})

    assert response.status_code == 200
    assert response.headers["cache-control"] == "private, max-age=120, stale-while-revalidate=300"
    body = response.json()
    assert body["success"] is True
    assert body["zone"] == "city_center"
    assert body["location"] == "Немига, Минск"
    assert body["uiConfig"]["cardStyle"] == "fancy"
    assert body["blocks"][0]["type"] == "banners"
    assert body["meta"]["radiusKm"] == 10


def test_home_config_label_falls_back_when_geocoder_fails(client):
    app.dependency_overrides[get_geocoder] = lambda: FakeGeocoder(error=GeocodingError("down"))

    body = client.get("/api/home-config", params={"lat": 53.9, "lng": 27.56}).json()

    assert body["location"] == "Ваш район"


def test_home_config_label_cached_per_area(client):
    geocoder = FakeGeocoder({"label": "Немига, Минск", "city": "Минск"})
    app.dependency_overrides[get_geocoder] = lambda: geocoder

    first = client.get("/api/home-config", params={"lat": 53.9, "lng": 27.56}).json()
    second = client.get("/api/home-config", params={"lat": 53.9, "lng": 27.56, "radiusKm": 5}).json()

    assert first["location"] == second["location"] == "Немига, Минск"
    assert geocoder.calls == 1


def test_home_config_failed_label_is_not_cached(client):
    app.dependency_overrides[get_geocoder] = lambda: FakeGeocoder(error=GeocodingError("down"))
    client.get("/api/home-config", params={"lat": 53.9, "lng": 27.56})
    app.dependency_overrides[get_geocoder] = lambda: FakeGeocoder({"label": "Немига, Минск"})

    body = client.get("/api/home-config", params={"lat": 53.9, "lng": 27.56}).json()

    assert body["location"] == "Немига, Минск"


@pytest.mark.parametrize(
    "params",
    [
        {},
        {"lat": "abc", "lng": "27.5"},
        {"lat": "95", "lng": "27.5"},
        {"lat": "53.9", "lng": "27.5", "zone": "downtown"},
    ],
)
def test_home_config_rejects_bad_input(client, params):
    response = client.get("/api/home-config", params=params)
    assert response.status_code == 400


def test_home_config_forced_zone_without_coordinates(client):
    body = client.get("/api/home-config", params={"zone": "village"}).json()
    assert body["zone"] == "village"
    assert body["confidence"] == 1.0
    assert body["location"] == "Ваш район"


def test_zones_listed(client):
    zones = client.get("/api/home-config/zones").json()["zones"]
    assert [z["id"] for z in zones] == ["village", "suburb", "city_center"]


def test_debug_classification(client):
    response = client.post("/api/home-config/debug", json={"lat": 53.9, "lng": 27.56})

    assert response.status_code == 200
    classification = response.json()["classification"]
    assert classification["zone"] == "city_center"
    assert classification["source"] == "classifier"


def test_debug_rejects_out_of_range(client):
    assert client.post("/api/home-config/debug", json={"lat": 100, "lng": 27.56}).status_code == 422


def test_search(client):
    response = client.get("/api/search", params={"query": "велосипед", "lat": 53.9, "lng": 27.56})

    assert response.status_code == 200
    assert response.headers["cache-control"] == "public, max-age=60"
    body = response.json()
    assert body["ok"] is True
    assert body["total"] == 5
    assert body["items"][0]["distanceKm"] == 0.2


def test_search_rejects_short_query(client):
    assert client.get("/api/search", params={"query": " a "}).status_code == 400


def test_nearby_free_ads(client, stores):
    body = client.get("/api/recommendations/nearby/free", params={"lat": 53.9, "lng": 27.56}).json()
    assert len(body["items"]) == 5
    assert stores.ads.geo_queries[0]["isFreeGiveaway"] is True


def test_similar_ads_unknown_ad(client):
    assert client.get("/api/recommendations/similar/nope").status_code == 404


def test_recommended_orders_unknown_worker(client):
    response = client.get("/api/worker-orders/recommended", params={"workerId": "missing"})
    assert response.status_code == 404


def test_worker_orders_paginated(client, stores):
    stores.worker_orders.docs = [{"_id": "o1", "title": "Кран", "category": "plumber", "location": {"lat": 53.9, "lng": 27.56}}]
    stores.worker_orders.counts = {"open": 21}

    body = client.get("/api/worker-orders", params={"lat": 53.9, "lng": 27.56, "limit": 10, "page": 2}).json()

    assert body["pagination"] == {"page": 2, "limit": 10, "total": 21, "pages": 3}
    assert body["orders"][0]["distance"] == 0
    assert stores.worker_orders.find_calls[0]["skip"] == 10


def test_workers_list_includes_badges(client):
    body = client.get("/api/workers").json()
    assert body["workers"][0]["name"] == "Иван"
    assert body["workers"][0]["level"]["level"] >= 1


def test_refresh_ranking(client, stores):
    response = client.post("/api/workers/w1/ranking")
    assert response.status_code == 200
    assert response.json()["worker"]["id"] == "w1"
    assert client.post("/api/workers/missing/ranking").status_code == 404


def test_worker_orders_sorted_by_urgency_rank(client, stores):
    stores.worker_orders.docs = [
        {"_id": "o1", "title": "Кран", "category": "plumber", "urgency": "low"},
        {"_id": "o2", "title": "Потоп", "category": "plumber", "urgency": "urgent"},
        {"_id": "o3", "title": "Розетка", "category": "plumber", "urgency": "normal"},
        {"_id": "o4", "title": "Котёл", "category": "plumber", "urgency": "high"},
    ]
    stores.worker_orders.counts = {"open": 4}

    body = client.get(
        "/api/worker-orders", params={"sortBy": "urgency", "lat": 53.9, "lng": 27.56, "radiusKm": 15}
    ).json()

    assert [o["id"] for o in body["orders"]] == ["o2", "o4", "o3", "o1"]
    call = stores.worker_orders.find_calls[0]
    assert call["near"] == (53.9, 27.56, 15)
    assert "location.geo" not in call["query"]
    assert call["skip"] == 0


def test_ad_at_zero_distance_keeps_zero():
    assert ad_summary({"_id": "ad1", "distanceMeters": 0})["distance"] == 0.0
    assert ad_summary({"_id": "ad1"})["distance"] is None
