"""Matching workers to orders and orders to workers.

A match score blends distance, reputation and recent activity into [0, 1].
Candidate sets come from one geo query bounded by the maximum distance; the
scoring itself is pure and takes the current time as an argument.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from geo import haversine_km, near_sphere
from models import MatchScore, Worker, WorkerOrder, as_utc
from stores import Stores, object_id

logger = logging.getLogger(__name__)

WEIGHTS: Dict[str, float] = {
    "distance": 0.25,
    "rating": 0.25,
    "experience": 0.15,
    "response_rate": 0.15,
    "completed_orders": 0.10,
    "availability": 0.10,
}
VERIFIED_MULTIPLIER = 1.1
PRO_MULTIPLIER = 1.05


class WorkerNotFoundError(LookupError):
    """Raised when an operation targets a worker id that does not exist."""

    def __init__(self, worker_id: Any) -> None:
        super().__init__(f"Worker not found: {worker_id}")
        self.worker_id = worker_id


def distance_between(a: Optional[tuple[float, float]], b: Optional[tuple[float, float]]) -> Optional[float]:
    if a is None or b is None:
        return None
    return haversine_km(a[0], a[1], b[0], b[1])


def calculate_distance_score(worker: Worker, order: WorkerOrder) -> float:
    distance = distance_between(order.coordinates(), worker.coordinates())
    if distance is None:
        return 0.5
    if distance <= 5:
        return 1.0
    if distance <= 10:
        return 0.9
    if distance <= 20:
        return 0.7
    if distance <= 30:
        return 0.5
    if distance <= 50:
        return 0.3
    return 0.1


def availability_score(last_active_at: Optional[datetime], now: datetime) -> float:
    last_active = as_utc(last_active_at)
    if last_active is None:
        return 0.2
    hours_ago = (now - last_active).total_seconds() / 3600
    if hours_ago < 1:
        return 1.0
    if hours_ago < 24:
        return 0.8
    if hours_ago < 72:
        return 0.5
    return 0.2


def calculate_match_score(worker: Worker, order: WorkerOrder, now: datetime) -> float:
    """Weighted match of one worker against one order, clamped to [0, 1]."""
    response_rate = 100 if worker.response_rate is None else worker.response_rate
    score = (
        calculate_distance_score(worker, order) * WEIGHTS["distance"]
        + worker.rating / 5 * WEIGHTS["rating"]
        + min(worker.experience_years / 10, 1) * WEIGHTS["experience"]
        + response_rate / 100 * WEIGHTS["response_rate"]
        + min(worker.completed_orders_count / 50, 1) * WEIGHTS["completed_orders"]
        + availability_score(worker.last_active_at, now) * WEIGHTS["availability"]
    )
    if worker.is_verified:
        score *= VERIFIED_MULTIPLIER
    if worker.is_pro:
        score *= PRO_MULTIPLIER
    return max(0.0, min(score, 1.0))


def _geo_filter(coordinates: Optional[tuple[float, float]], max_distance_km: float) -> Dict[str, Any]:
    if coordinates is None:
        return {}
    return {"location.geo": near_sphere(coordinates[0], coordinates[1], max_distance_km)}


class WorkerMatchingService:
    weights = WEIGHTS
    calculate_match_score = staticmethod(calculate_match_score)
    calculate_distance_score = staticmethod(calculate_distance_score)

    def __init__(self, stores: Stores) -> None:
        self.stores = stores

    async def _get_worker(self, worker_id: Any) -> Optional[Worker]:
        doc = await self.stores.workers.get(worker_id)
        return Worker.model_validate(doc) if doc else None

    async def find_matching_workers(
        self,
        order: WorkerOrder,
        limit: int = 20,
        max_distance_km: float = 50,
        min_rating: float = 0,
        now: Optional[datetime] = None,
    ) -> List[MatchScore]:
        """Best-scoring active workers for `order`, excluding those who already responded."""
        now = now or datetime.now(timezone.utc)
        query: Dict[str, Any] = {
            "status": "active",
            "categories": order.category,
            **_geo_filter(order.coordinates(), max_distance_km),
        }
        if min_rating > 0:
            query["rating"] = {"$gte": min_rating}

        docs = await self.stores.workers.find(query, limit=limit * 2)
        responded = set(await self.stores.worker_responses.responded_worker_ids(order.id))

        matches = []
        for doc in docs:
            worker = Worker.model_validate(doc)
            if worker.id in responded:
                continue
            matches.append(
                MatchScore(
                    worker=worker,
                    score=calculate_match_score(worker, order, now),
                    distance_km=distance_between(order.coordinates(), worker.coordinates()),
                )
            )
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:limit]

    async def get_recommended_orders(
        self, worker_id: Any, limit: int = 10, max_distance_km: float = 50
    ) -> List[Dict[str, Any]]:
        """Open orders in the worker's categories, most urgent then newest first.

        Raises:
            WorkerNotFoundError: `worker_id` does not exist.
        """
        worker = await self._get_worker(worker_id)
        if worker is None:
            raise WorkerNotFoundError(worker_id)

        responded = await self.stores.worker_responses.responded_order_ids(worker.id)
        query: Dict[str, Any] = {
            "status": "open",
            "category": {"$in": worker.categories},
            "_id": {"$nin": responded},
        }
        coordinates = worker.coordinates()
        near = (*coordinates, max_distance_km) if coordinates is not None else None
        orders = await self.stores.worker_orders.find_by_urgency(query, near=near, limit=limit)

        result = []
        for doc in orders:
            order = WorkerOrder.model_validate(doc)
            result.append({**doc, "distance": distance_between(coordinates, order.coordinates())})
        return result

    async def get_top_workers_for_category(
        self,
        category: str,
        limit: int = 5,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius_km: float = 30,
    ) -> List[Worker]:
        coordinates = (lat, lng) if lat is not None and lng is not None else None
        query = {"status": "active", "categories": category, **_geo_filter(coordinates, radius_km)}
        docs = await self.stores.workers.find(
            query, sort={"rating": -1, "completedOrdersCount": -1}, limit=limit
        )
        return [Worker.model_validate(doc) for doc in docs]

    async def get_similar_workers(self, worker_id: Any, limit: int = 5) -> List[Worker]:
        """Highest-rated active workers sharing a category within 30 km."""
        worker = await self._get_worker(worker_id)
        if worker is None:
            return []
        query = {
            "_id": {"$ne": object_id(worker.id)},
            "status": "active",
            "categories": {"$in": worker.categories},
            **_geo_filter(worker.coordinates(), 30),
        }
        docs = await self.stores.workers.find(query, sort={"rating": -1}, limit=limit)
        return [Worker.model_validate(doc) for doc in docs]
