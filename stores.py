"""Thin async data-access wrappers over Motor collections.

Each store exposes only the queries the geo core needs. Services receive
store instances instead of touching `database.db` directly, which keeps the
scoring and assembly logic testable with in-memory fakes.
"""
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from geo import geo_point, near_sphere, within_radius
from models import URGENCY_ORDER

Sort = Mapping[str, int]


def object_id(value: Any) -> Any:
    """Convert a 24-hex string to ObjectId, leaving other values untouched."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def to_public(doc: Any) -> Any:
    """Make a Mongo document JSON-safe: `_id` becomes `id`, ObjectIds become strings."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [to_public(item) for item in doc]
    if isinstance(doc, dict):
        return {("id" if key == "_id" else key): to_public(value) for key, value in doc.items()}
    return doc


def _sort_spec(sort: Optional[Sort]) -> List[tuple[str, int]]:
    return list((sort or {}).items())


class _Store:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def find(
        self,
        query: Dict[str, Any],
        sort: Optional[Sort] = None,
        limit: int = 0,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(_sort_spec(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit or None)

    async def count(self, query: Dict[str, Any]) -> int:
        return await self.collection.count_documents(query)

    async def get(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({"_id": object_id(doc_id)})


class AdStore(_Store):
    """Read-only access to classified ads."""

    async def geo_near(
        self,
        lat: float,
        lng: float,
        max_distance_km: float,
        query: Dict[str, Any],
        sort: Optional[Sort],
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Nearest-first ads within `max_distance_km`, with `distanceMeters` set."""
        pipeline = [
            {
                "$geoNear": {
                    "near": geo_point(lat, lng),
                    "distanceField": "distanceMeters",
                    "maxDistance": max_distance_km * 1000,
                    "spherical": True,
                    "key": "location.geo",
                    "query": query,
                }
            },
            {"$sort": {"distanceMeters": 1, **dict(sort or {})}},
            {"$limit": limit},
        ]
        return await self.collection.aggregate(pipeline).to_list(length=limit)

    async def count_within(self, lat: float, lng: float, radius_km: float, query: Dict[str, Any]) -> int:
        return await self.count({**query, "location.geo": within_radius(lat, lng, radius_km)})


class SellerProfileStore(_Store):
    """Seller storefronts; a profile carries a `role` or a `roles` list."""

    async def find_by_role(
        self,
        role: str,
        lat: Optional[float],
        lng: Optional[float],
        radius_km: float,
        limit: int,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {
            "isActive": True,
            "$or": [{"role": role}, {"roles": {"$in": [role]}}],
        }
        if lat is not None and lng is not None:
            query["location.geo"] = near_sphere(lat, lng, radius_km)
        return await self.find(query, limit=limit)


class DemandStore(_Store):
    """Aggregated search demand (what buyers look for nearby)."""

    async def find_near(
        self, lat: Optional[float], lng: Optional[float], radius_km: float, limit: int
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if lat is not None and lng is not None:
            query["location.geo"] = near_sphere(lat, lng, radius_km)
        return await self.find(query, sort={"searchCount": -1}, limit=limit)

    async def find_by_geohash_prefix(
        self,
        prefix: str,
        since: datetime,
        exclude_categories: Sequence[str],
        min_searches: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        query = {
            "geoHash": {"$regex": f"^{prefix}"},
            "period": {"$in": ["day", "week"]},
            "periodStart": {"$gte": since},
            "searchesCount": {"$gte": min_searches},
            "detectedCategoryId": {"$nin": list(exclude_categories)},
        }
        return await self.find(query, sort={"searchesCount": -1}, limit=limit)


class SeasonStore(_Store):
    async def find_active(self, now: datetime, limit: int) -> List[Dict[str, Any]]:
        query = {"isActive": True, "startDate": {"$lte": now}, "endDate": {"$gte": now}}
        return await self.find(query, limit=limit)


class WorkerStore(_Store):
    async def update_fields(self, worker_id: Any, fields: Dict[str, Any]) -> None:
        await self.collection.update_one({"_id": object_id(worker_id)}, {"$set": fields})

    async def ids(self, query: Dict[str, Any]) -> List[Any]:
        return await self.collection.distinct("_id", query)


def urgency_rank_expression() -> Dict[str, Any]:
    """Numeric rank for `urgency` (0 = urgent); unknown labels sort last."""
    return {
        "$switch": {
            "branches": [
                {"case": {"$eq": ["$urgency", label]}, "then": rank}
                for rank, label in enumerate(URGENCY_ORDER)
            ],
            "default": len(URGENCY_ORDER),
        }
    }


class WorkerOrderStore(_Store):
    async def find_by_urgency(
        self,
        query: Dict[str, Any],
        near: Optional[tuple[float, float, float]] = None,
        limit: int = 20,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        """Most urgent first, newest first within one urgency.

        `near` is `(lat, lng, max_distance_km)`; it becomes a `$geoNear`
        stage because `$nearSphere` is not allowed inside `$match`.
        """
        if near is not None:
            lat, lng, max_distance_km = near
            first_stage = {
                "$geoNear": {
                    "near": geo_point(lat, lng),
                    "distanceField": "distanceMeters",
                    "maxDistance": max_distance_km * 1000,
                    "spherical": True,
                    "key": "location.geo",
                    "query": query,
                }
            }
        else:
            first_stage = {"$match": query}
        pipeline: List[Dict[str, Any]] = [
            first_stage,
            {"$addFields": {"urgencyRank": urgency_rank_expression()}},
            {"$sort": {"urgencyRank": 1, "createdAt": -1}},
        ]
        if skip:
            pipeline.append({"$skip": skip})
        pipeline += [{"$limit": limit}, {"$project": {"urgencyRank": 0}}]
        return await self.collection.aggregate(pipeline).to_list(length=limit)


class WorkerResponseStore(_Store):
    async def responded_worker_ids(self, order_id: Any) -> List[str]:
        ids = await self.collection.distinct("workerId", {"orderId": object_id(order_id)})
        return [str(i) for i in ids]

    async def responded_order_ids(self, worker_id: Any) -> List[Any]:
        return await self.collection.distinct("orderId", {"workerId": object_id(worker_id)})


class WorkerReviewStore(_Store):
    async def stats(self, worker_id: Any) -> Dict[str, Any]:
        """Average scores over visible reviews; zeros when there are none."""
        pipeline = [
            {"$match": {"workerId": object_id(worker_id), "isHidden": {"$ne": True}}},
            {
                "$group": {
                    "_id": None,
                    "avgRating": {"$avg": "$rating"},
                    "avgQuality": {"$avg": "$quality"},
                    "avgPunctuality": {"$avg": "$punctuality"},
                    "avgCommunication": {"$avg": "$communication"},
                    "count": {"$sum": 1},
                }
            },
        ]
        result = await self.collection.aggregate(pipeline).to_list(length=1)
        if result:
            return result[0]
        return {
            "avgRating": 0,
            "avgQuality": 0,
            "avgPunctuality": 0,
            "avgCommunication": 0,
            "count": 0,
        }


class Stores:
    """All stores bound to one database handle."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.ads = AdStore(db.ads)
        self.seller_profiles = SellerProfileStore(db.seller_profiles)
        self.demand = DemandStore(db.demand_stats)
        self.seasons = SeasonStore(db.seasons)
        self.workers = WorkerStore(db.workers)
        self.worker_orders = WorkerOrderStore(db.worker_orders)
        self.worker_responses = WorkerResponseStore(db.worker_responses)
        self.worker_reviews = WorkerReviewStore(db.worker_reviews)
