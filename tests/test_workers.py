import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from fakes import FakeCollectionStore, FakeResponseStore, FakeReviewStore, FakeStores
from models import Worker, WorkerOrder
from services.worker_matching import (
    WorkerMatchingService,
    WorkerNotFoundError,
    availability_score,
    calculate_distance_score,
    calculate_match_score,
)
from services.worker_ranking import (
    WorkerRankingService,
    calculate_overall_score,
    get_badges,
    get_level,
    response_time_score,
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
MINSK = {"lat": 53.9, "lng": 27.5667, "city": "Минск"}


def worker(**fields):
    return Worker.model_validate({"_id": "w1", "name": "Иван", "categories": ["plumber"], **fields})


def order(**fields):
    return WorkerOrder.model_validate({"_id": "o1", "category": "plumber", **fields})


def test_distance_score_steps():
    o = order(location=MINSK)
    # roughly 0.111 km per 0.001 degree of latitude
    assert calculate_distance_score(worker(location={"lat": 53.93, "lng": 27.5667}), o) == 1.0
    assert calculate_distance_score(worker(location={"lat": 53.98, "lng": 27.5667}), o) == 0.9
    assert calculate_distance_score(worker(location={"lat": 54.2, "lng": 27.5667}), o) == 0.3
    assert calculate_distance_score(worker(location={"lat": 55.0, "lng": 27.5667}), o) == 0.1
    assert calculate_distance_score(worker(), o) == 0.5


def test_availability_steps():
    assert availability_score(NOW - timedelta(minutes=30), NOW) == 1.0
    assert availability_score(NOW - timedelta(hours=5), NOW) == 0.8
    assert availability_score(NOW - timedelta(hours=48), NOW) == 0.5
    assert availability_score(None, NOW) == 0.2
    # naive datetimes from Mongo are UTC
    assert availability_score(datetime(2026, 5, 1, 11, 30), NOW) == 1.0


def test_match_score_is_clamped_after_multipliers():
    best = worker(
        location=MINSK,
        rating=5,
        experienceYears=20,
        responseRate=100,
        completedOrdersCount=500,
        lastActiveAt=NOW,
        isVerified=True,
        isPro=True,
    )
    assert calculate_match_score(best, order(location=MINSK), NOW) == 1.0
    assert calculate_match_score(worker(), order(), NOW) >= 0.0


def test_missing_response_rate_counts_as_full_for_matching():
    base = worker(location=MINSK)
    explicit = worker(location=MINSK, responseRate=100)
    assert calculate_match_score(base, order(location=MINSK), NOW) == calculate_match_score(
        explicit, order(location=MINSK), NOW
    )


def test_find_matching_workers_excludes_responders_and_sorts():
    docs = [
        {"_id": "w1", "categories": ["plumber"], "rating": 3, "location": MINSK},
        {"_id": "w2", "categories": ["plumber"], "rating": 5, "location": MINSK},
        {"_id": "w3", "categories": ["plumber"], "rating": 4, "location": MINSK},
    ]
    workers = FakeCollectionStore(docs)
    stores = FakeStores(workers=workers, worker_responses=FakeResponseStore(worker_ids=["w2"]))
    service = WorkerMatchingService(stores)

    matches = asyncio.run(
        service.find_matching_workers(order(location=MINSK), limit=5, min_rating=2, now=NOW)
    )

    assert [m.worker.id for m in matches] == ["w3", "w1"]
    assert matches[0].distance_km == 0
    query = workers.find_calls[0]["query"]
    assert query["rating"] == {"$gte": 2}
    assert "$nearSphere" in query["location.geo"]
    assert workers.find_calls[0]["limit"] == 10


def test_find_matching_workers_without_location_uses_category_only():
    workers = FakeCollectionStore([])
    service = WorkerMatchingService(FakeStores(workers=workers))

    asyncio.run(service.find_matching_workers(order(), now=NOW))

    assert workers.find_calls[0]["query"] == {"status": "active", "categories": "plumber"}


def test_recommended_orders_rank_urgency_then_recency():
    orders = FakeCollectionStore(
        [
            {"_id": "o1", "category": "plumber", "urgency": "normal", "location": MINSK},
            {"_id": "o2", "category": "plumber", "urgency": "urgent"},
            {"_id": "o3", "category": "plumber", "urgency": "low"},
            {"_id": "o4", "category": "plumber", "urgency": "high"},
        ]
    )
    stores = FakeStores(
        workers=FakeCollectionStore([{"_id": "w1", "categories": ["plumber"], "location": MINSK}]),
        worker_orders=orders,
        worker_responses=FakeResponseStore(order_ids=["o9"]),
    )

    result = asyncio.run(WorkerMatchingService(stores).get_recommended_orders("w1", limit=3))

    assert [o["_id"] for o in result] == ["o2", "o4", "o1"]
    assert result[2]["distance"] == 0
    assert result[0]["distance"] is None
    call = orders.find_calls[0]
    assert call["query"]["_id"] == {"$nin": ["o9"]}
    assert call["near"] == (53.9, 27.5667, 50)
    assert call["limit"] == 3


def test_recommended_orders_include_old_urgent_order():
    recent_low = [
        {"_id": f"low{n}", "category": "plumber", "urgency": "low", "createdAt": NOW - timedelta(hours=n)}
        for n in range(30)
    ]
    old_urgent = {"_id": "urgent", "category": "plumber", "urgency": "urgent", "createdAt": NOW - timedelta(days=2)}
    orders = FakeCollectionStore(recent_low + [old_urgent])
    stores = FakeStores(
        workers=FakeCollectionStore([{"_id": "w1", "categories": ["plumber"]}]),
        worker_orders=orders,
    )

    result = asyncio.run(WorkerMatchingService(stores).get_recommended_orders("w1", limit=10))

    assert len(result) == 10
    assert result[0]["_id"] == "urgent"
    assert [o["_id"] for o in result[1:4]] == ["low0", "low1", "low2"]
    assert orders.find_calls[0]["near"] is None


def test_recommended_orders_unknown_worker():
    with pytest.raises(WorkerNotFoundError):
        asyncio.run(WorkerMatchingService(FakeStores()).get_recommended_orders("missing"))


def test_similar_workers_empty_for_unknown_worker():
    assert asyncio.run(WorkerMatchingService(FakeStores()).get_similar_workers("missing")) == []


def test_response_time_steps():
    assert response_time_score(None) == 0.5
    assert response_time_score(0) == 0.5
    assert response_time_score(5) == 1.0
    assert response_time_score(45) == 0.5
    assert response_time_score(240) == 0.3


def test_overall_score_bounds_and_rounding():
    top = worker(
        rating=5,
        completedOrdersCount=1000,
        responseRate=100,
        avgResponseTimeMinutes=1,
        experienceYears=40,
        isVerified=True,
        isPro=True,
    )
    assert calculate_overall_score(top) == 1.0
    assert calculate_overall_score(worker()) == 0.05

    mid = worker(rating=4, completedOrdersCount=50, responseRate=80, avgResponseTimeMinutes=20, experienceYears=6)
    # 0.24 + 0.10 + 0.12 + 0.07 + 0.04
    assert calculate_overall_score(mid) == 0.57


def test_levels_and_badges():
    assert get_level(worker())["level"] == 1
    assert get_level(worker(rating=4, completedOrdersCount=50, responseRate=80, avgResponseTimeMinutes=20, experienceYears=6))["name"] == "Профессионал"

    badges = get_badges(worker(isVerified=True, completedOrdersCount=60, rating=4.9, reviewsCount=12, isTeam=True, teamSize=3))
    assert [b["type"] for b in badges] == ["verified", "experienced", "top_rated", "team"]
    assert badges[-1]["label"] == "Бригада 3 чел."


def test_update_ranking_writes_single_set():
    workers = FakeCollectionStore([{"_id": "w1", "name": "Иван"}])
    stores = FakeStores(
        workers=workers,
        worker_reviews=FakeReviewStore(
            {"avgRating": 4.666, "avgQuality": 4.5, "avgPunctuality": 5, "avgCommunication": 4.333, "count": 3}
        ),
        worker_responses=FakeResponseStore(counts={"accepted": 3, "*": 4}),
        worker_orders=FakeCollectionStore(counts={"completed": 7, "in_progress": 1}),
    )
    service = WorkerRankingService(stores)

    first = asyncio.run(service.update_worker_ranking("w1"))
    asyncio.run(service.update_worker_ranking("w1"))

    assert len(workers.updates) == 2
    assert workers.updates[0] == workers.updates[1]
    fields = workers.updates[0][1]
    assert fields["rating"] == 4.67
    assert fields["reviewsCount"] == 3
    assert fields["reviewSummary"] == {"quality": 4.5, "punctuality": 5, "communication": 4.33}
    assert fields["responseRate"] == 75
    assert (fields["completedOrdersCount"], fields["activeOrdersCount"]) == (7, 1)
    assert first["name"] == "Иван"


def test_update_ranking_without_reviews_resets_derived_fields():
    workers = FakeCollectionStore(
        [{"_id": "w1", "rating": 4.9, "reviewsCount": 12, "reviewSummary": {"quality": 5}, "responseRate": 80}]
    )
    service = WorkerRankingService(FakeStores(workers=workers))

    updated = asyncio.run(service.update_worker_ranking("w1"))

    fields = workers.updates[0][1]
    assert (fields["rating"], fields["reviewsCount"], fields["reviewSummary"]) == (0.0, 0, None)
    assert fields["responseRate"] is None
    assert updated["rating"] == 0.0


def test_update_ranking_unknown_worker():
    with pytest.raises(WorkerNotFoundError):
        asyncio.run(WorkerRankingService(FakeStores()).update_worker_ranking("missing"))


def test_leaderboard_ranks_by_overall_score():
    workers = FakeCollectionStore(
        [
            {"_id": "w1", "name": "A", "rating": 5, "location": MINSK},
            {"_id": "w2", "name": "B", "rating": 3, "isVerified": True, "isPro": True, "completedOrdersCount": 100},
        ]
    )
    board = asyncio.run(WorkerRankingService(FakeStores(workers=workers)).get_leaderboard("plumber", limit=1, city="Минск"))

    assert board == [
        {
            "rank": 1,
            "id": "w2",
            "name": "B",
            "avatar": None,
            "categories": [],
            "rating": 3.0,
            "reviewsCount": 0,
            "completedOrdersCount": 100,
            "isVerified": True,
            "isPro": True,
            "overallScore": 0.58,
            "city": None,
        }
    ]
    query = workers.find_calls[0]["query"]
    assert query == {"status": "active", "categories": "plumber", "location.city": "Минск"}


class FlakyRankingService(WorkerRankingService):
    async def update_worker_ranking(self, worker_id):
        if worker_id == "w2":
            raise RuntimeError("write conflict")
        return {}


def test_recalculate_all_skips_failures():
    workers = FakeCollectionStore([{"_id": "w1"}, {"_id": "w2"}, {"_id": "w3"}])
    assert asyncio.run(FlakyRankingService(FakeStores(workers=workers)).recalculate_all_rankings()) == 2
