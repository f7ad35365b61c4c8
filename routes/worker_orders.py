"""Worker-order listing and matching endpoints."""
import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from dependencies import get_matching_service, get_stores
from geo import document_coordinates, haversine_km, in_range, near_sphere, to_float, within_radius
from models import WorkerOrder
from services.worker_matching import WorkerMatchingService, WorkerNotFoundError
from stores import Stores, to_public

router = APIRouter(prefix="/api/worker-orders", tags=["worker-orders"])

SORT_OPTIONS: Dict[str, Dict[str, int]] = {
    "recent": {"createdAt": -1},
    "budget_high": {"budgetTo": -1},
    "budget_low": {"budgetFrom": 1},
    "deadline": {"deadline": 1},
}


def order_summary(order: Dict[str, Any], origin: Optional[tuple[float, float]]) -> Dict[str, Any]:
    location = order.get("location") or {}
    data = {
        "id": str(order["_id"]),
        "title": order.get("title"),
        "description": (order.get("description") or "")[:200] or None,
        "category": order.get("category"),
        "budgetFrom": order.get("budgetFrom"),
        "budgetTo": order.get("budgetTo"),
        "budgetType": order.get("budgetType"),
        "currency": order.get("currency"),
        "urgency": order.get("urgency"),
        "deadline": order.get("deadline"),
        "responsesCount": order.get("responsesCount"),
        "maxResponses": order.get("maxResponses"),
        "city": location.get("city"),
        "photos": (order.get("photos") or [])[:1],
        "createdAt": order.get("createdAt"),
    }
    coords = document_coordinates(order)
    if origin is not None and coords is not None:
        data["distance"] = haversine_km(origin[0], origin[1], *coords)
    return data


@router.get("")
async def list_orders(
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    radius_km: float = Query(30, alias="radiusKm", gt=0),
    category: Optional[str] = None,
    urgency: Optional[str] = None,
    status: str = "open",
    sort_by: str = Query("recent", alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    stores: Stores = Depends(get_stores),
) -> dict:
    """Paginated orders, nearest within `radiusKm` when coordinates are given."""
    query: Dict[str, Any] = {"status": status}
    if category:
        query["category"] = category
    if urgency:
        query["urgency"] = urgency

    origin_lat, origin_lng = to_float(lat), to_float(lng)
    origin = None
    count_query = dict(query)
    if origin_lat is not None and origin_lng is not None and in_range(origin_lat, origin_lng):
        origin = (origin_lat, origin_lng)
        # count_documents rejects $nearSphere
        count_query["location.geo"] = within_radius(origin_lat, origin_lng, radius_km)

    skip = (page - 1) * limit
    if sort_by == "urgency":
        near = (*origin, radius_km) if origin is not None else None
        orders = await stores.worker_orders.find_by_urgency(query, near=near, limit=limit, skip=skip)
    else:
        if origin is not None:
            query["location.geo"] = near_sphere(origin_lat, origin_lng, radius_km)
        orders = await stores.worker_orders.find(
            query,
            sort=SORT_OPTIONS.get(sort_by, SORT_OPTIONS["recent"]),
            skip=skip,
            limit=limit,
        )
    total = await stores.worker_orders.count(count_query)
    return {
        "orders": [order_summary(o, origin) for o in orders],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@router.get("/recommended")
async def recommended_orders(
    worker_id: str = Query(..., alias="workerId"),
    limit: int = Query(10, ge=1, le=50),
    matching: WorkerMatchingService = Depends(get_matching_service),
) -> dict:
    """Open orders suited to a worker's categories and location."""
    try:
        orders = await matching.get_recommended_orders(worker_id, limit=limit)
    except WorkerNotFoundError:
        raise HTTPException(status_code=404, detail="Worker not found")
    return {"orders": to_public(orders)}


@router.get("/{order_id}/matching-workers")
async def matching_workers(
    order_id: str,
    limit: int = Query(20, ge=1, le=100),
    max_distance_km: float = Query(50, alias="maxDistanceKm", gt=0),
    min_rating: float = Query(0, alias="minRating", ge=0, le=5),
    stores: Stores = Depends(get_stores),
    matching: WorkerMatchingService = Depends(get_matching_service),
) -> dict:
    """Best-matching workers for an order, excluding those who already responded."""
    doc = await stores.worker_orders.get(order_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="Order not found")

    matches = await matching.find_matching_workers(
        WorkerOrder.model_validate(doc),
        limit=limit,
        max_distance_km=max_distance_km,
        min_rating=min_rating,
    )
    return {
        "workers": [
            {**m.worker.to_json(), "matchScore": round(m.score, 3), "distance": m.distance_km}
            for m in matches
        ]
    }
