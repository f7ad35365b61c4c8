"""Worker reputation: stored ranking fields, overall score, badges and levels."""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from models import Worker
from services.worker_matching import WorkerNotFoundError
from stores import Stores, object_id

logger = logging.getLogger(__name__)

RANKING_WEIGHTS: Dict[str, float] = {
    "rating": 0.30,
    "completed_orders": 0.20,
    "response_rate": 0.15,
    "response_time": 0.10,
    "experience": 0.10,
    "verified": 0.10,
    "pro": 0.05,
}

LEVELS = (
    (0.9, {"level": 5, "name": "Мастер", "color": "#FFD700"}),
    (0.75, {"level": 4, "name": "Эксперт", "color": "#9B59B6"}),
    (0.55, {"level": 3, "name": "Профессионал", "color": "#3498DB"}),
    (0.35, {"level": 2, "name": "Специалист", "color": "#27AE60"}),
)
BASE_LEVEL = {"level": 1, "name": "Новичок", "color": "#95A5A6"}


def response_time_score(minutes: Optional[float]) -> float:
    if not minutes:
        return 0.5
    if minutes <= 5:
        return 1.0
    if minutes <= 15:
        return 0.9
    if minutes <= 30:
        return 0.7
    if minutes <= 60:
        return 0.5
    return 0.3


def calculate_overall_score(worker: Worker) -> float:
    """Reputation score in [0, 1], rounded to two decimals."""
    score = (
        worker.rating / 5 * RANKING_WEIGHTS["rating"]
        + min(worker.completed_orders_count / 100, 1) * RANKING_WEIGHTS["completed_orders"]
        + (worker.response_rate or 0) / 100 * RANKING_WEIGHTS["response_rate"]
        + response_time_score(worker.avg_response_time_minutes) * RANKING_WEIGHTS["response_time"]
        + min(worker.experience_years / 15, 1) * RANKING_WEIGHTS["experience"]
    )
    if worker.is_verified:
        score += RANKING_WEIGHTS["verified"]
    if worker.is_pro:
        score += RANKING_WEIGHTS["pro"]
    return round(max(0.0, min(score, 1.0)), 2)


def get_badges(worker: Worker) -> List[Dict[str, str]]:
    badges = []
    if worker.is_verified:
        badges.append({"type": "verified", "label": "Проверен", "icon": "✓"})
    if worker.is_pro:
        badges.append({"type": "pro", "label": "PRO", "icon": "⭐"})

    if worker.completed_orders_count >= 100:
        badges.append({"type": "expert", "label": "Эксперт", "icon": "🏆"})
    elif worker.completed_orders_count >= 50:
        badges.append({"type": "experienced", "label": "Опытный", "icon": "🔥"})
    elif worker.completed_orders_count >= 10:
        badges.append({"type": "active", "label": "Активный", "icon": "💪"})

    if worker.rating >= 4.8 and worker.reviews_count >= 10:
        badges.append({"type": "top_rated", "label": "Топ рейтинг", "icon": "⭐"})
    if (worker.response_rate or 0) >= 90:
        badges.append({"type": "responsive", "label": "Быстрый отклик", "icon": "⚡"})
    if worker.is_team:
        badges.append({"type": "team", "label": f"Бригада {worker.team_size} чел.", "icon": "👥"})
    return badges


def get_level(worker: Worker) -> Dict[str, Any]:
    score = calculate_overall_score(worker)
    for threshold, level in LEVELS:
        if score >= threshold:
            return dict(level)
    return dict(BASE_LEVEL)


class WorkerRankingService:
    calculate_overall_score = staticmethod(calculate_overall_score)
    get_badges = staticmethod(get_badges)
    get_level = staticmethod(get_level)

    def __init__(self, stores: Stores) -> None:
        self.stores = stores

    async def update_worker_ranking(self, worker_id: Any) -> Dict[str, Any]:
        """Recompute stored ranking fields from reviews, responses and orders.

        Writes every field with a single `$set`, so repeated runs over
        unchanged records converge on the same document.

        Raises:
            WorkerNotFoundError: `worker_id` does not exist.
        """
        worker = await self.stores.workers.get(worker_id)
        if worker is None:
            raise WorkerNotFoundError(worker_id)

        oid = object_id(worker_id)
        stats, accepted, total_responses, completed, active = await asyncio.gather(
            self.stores.worker_reviews.stats(oid),
            self.stores.worker_responses.count({"workerId": oid, "status": "accepted"}),
            self.stores.worker_responses.count({"workerId": oid}),
            self.stores.worker_orders.count({"assignedWorkerId": oid, "status": "completed"}),
            self.stores.worker_orders.count({"assignedWorkerId": oid, "status": "in_progress"}),
        )

        # Reset when there are no visible reviews or no responses
        fields: Dict[str, Any] = {
            "completedOrdersCount": completed,
            "activeOrdersCount": active,
            "rating": 0.0,
            "reviewsCount": 0,
            "reviewSummary": None,
            "responseRate": None,
        }
        if stats["count"] > 0:
            fields["rating"] = round(stats["avgRating"] or 0, 2)
            fields["reviewsCount"] = stats["count"]
            fields["reviewSummary"] = {
                "quality": round(stats["avgQuality"] or 0, 2),
                "punctuality": round(stats["avgPunctuality"] or 0, 2),
                "communication": round(stats["avgCommunication"] or 0, 2),
            }
        if total_responses > 0:
            fields["responseRate"] = round(accepted / total_responses * 100)

        await self.stores.workers.update_fields(oid, fields)
        return {**worker, **fields}

    async def get_leaderboard(
        self, category: Optional[str] = None, limit: int = 20, city: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"status": "active"}
        if category:
            query["categories"] = category
        if city:
            query["location.city"] = city

        docs = await self.stores.workers.find(
            query, sort={"rating": -1, "completedOrdersCount": -1}, limit=limit * 2
        )
        scored = [(calculate_overall_score(w), w) for w in (Worker.model_validate(d) for d in docs)]
        scored.sort(key=lambda item: item[0], reverse=True)

        return [
            {
                "rank": rank,
                "id": worker.id,
                "name": worker.name,
                "avatar": worker.avatar,
                "categories": worker.categories,
                "rating": worker.rating,
                "reviewsCount": worker.reviews_count,
                "completedOrdersCount": worker.completed_orders_count,
                "isVerified": worker.is_verified,
                "isPro": worker.is_pro,
                "overallScore": score,
                "city": worker.location.city if worker.location else None,
            }
            for rank, (score, worker) in enumerate(scored[:limit], start=1)
        ]

    async def recalculate_all_rankings(self) -> int:
        """Refresh every non-banned worker; returns how many were updated."""
        updated = 0
        for worker_id in await self.stores.workers.ids({"status": {"$ne": "banned"}}):
            try:
                await self.update_worker_ranking(worker_id)
                updated += 1
            except Exception as e:  # noqa: BLE001 - keep going over the rest
                logger.error("Failed to update ranking for worker %s: %s", worker_id, e)
        logger.info("Updated %d worker rankings", updated)
        return updated
