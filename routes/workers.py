"""Worker directory, leaderboard and ranking endpoints."""
import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from dependencies import get_matching_service, get_ranking_service, get_stores
from geo import document_coordinates, has_coordinates, haversine_km, in_range, near_sphere, to_float, within_radius
from models import Worker
from services.worker_matching import WorkerMatchingService, WorkerNotFoundError
from services.worker_ranking import WorkerRankingService
from stores import Stores, to_public

router = APIRouter(prefix="/api/workers", tags=["workers"])

SORT_OPTIONS: Dict[str, Dict[str, int]] = {
    "rating": {"rating": -1, "completedOrdersCount": -1},
    "reviews": {"reviewsCount": -1, "rating": -1},
    "price_asc": {"priceFrom": 1},
    "price_desc": {"priceTo": -1},
    "recent": {"lastActiveAt": -1},
}


def worker_summary(doc: Dict[str, Any], origin: Optional[tuple[float, float]] = None) -> Dict[str, Any]:
    worker = Worker.model_validate(doc)
    data = {
        "id": worker.id,
        "name": worker.name,
        "avatar": worker.avatar,
        "categories": worker.categories,
        "experienceYears": worker.experience_years,
        "priceFrom": doc.get("priceFrom"),
        "priceTo": doc.get("priceTo"),
        "priceUnit": doc.get("priceUnit"),
        "currency": doc.get("currency"),
        "rating": worker.rating,
        "reviewsCount": worker.reviews_count,
        "completedOrdersCount": worker.completed_orders_count,
        "isVerified": worker.is_verified,
        "isPro": worker.is_pro,
        "isTeam": worker.is_team,
        "teamSize": worker.team_size,
        "tags": doc.get("tags") or [],
        "city": worker.location.city if worker.location else None,
        "badges": WorkerRankingService.get_badges(worker),
        "level": WorkerRankingService.get_level(worker),
    }
    coords = document_coordinates(doc)
    if origin is not None and coords is not None:
        data["distance"] = haversine_km(origin[0], origin[1], *coords)
    return data


@router.get("")
async def list_workers(
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    radius_km: float = Query(30, alias="radiusKm", gt=0),
    category: Optional[str] = None,
    min_rating: Optional[float] = Query(None, alias="minRating", ge=0, le=5),
    is_verified: bool = Query(False, alias="isVerified"),
    is_team: bool = Query(False, alias="isTeam"),
    sort_by: str = Query("rating", alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    stores: Stores = Depends(get_stores),
) -> dict:
    """Paginated active workers, optionally near a point."""
    query: Dict[str, Any] = {"status": "active"}
    if category:
        query["categories"] = category
    if min_rating:
        query["rating"] = {"$gte": min_rating}
    if is_verified:
        query["isVerified"] = True
    if is_team:
        query["isTeam"] = True

    origin = None
    count_query = dict(query)
    if has_coordinates(lat, lng) and in_range(to_float(lat), to_float(lng)):
        origin = (to_float(lat), to_float(lng))
        query["location.geo"] = near_sphere(origin[0], origin[1], radius_km)
        count_query["location.geo"] = within_radius(origin[0], origin[1], radius_km)

    workers = await stores.workers.find(
        query,
        sort=SORT_OPTIONS.get(sort_by, SORT_OPTIONS["rating"]),
        skip=(page - 1) * limit,
        limit=limit,
    )
    total = await stores.workers.count(count_query)
    return {
        "workers": [worker_summary(w, origin) for w in workers],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@router.get("/top")
async def top_workers(
    category: Optional[str] = None,
    limit: int = Query(5, ge=1, le=50),
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    stores: Stores = Depends(get_stores),
    matching: WorkerMatchingService = Depends(get_matching_service),
) -> dict:
    """Highest rated workers, for one category near the user when given."""
    if category:
        workers = await matching.get_top_workers_for_category(
            category, limit=limit, lat=to_float(lat), lng=to_float(lng)
        )
        return {"workers": [worker_summary(w.model_dump(by_alias=True)) for w in workers]}

    docs = await stores.workers.find(
        {"status": "active"}, sort={"rating": -1, "completedOrdersCount": -1}, limit=limit
    )
    return {"workers": [worker_summary(d) for d in docs]}


@router.get("/leaderboard")
async def leaderboard(
    category: Optional[str] = None,
    city: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    ranking: WorkerRankingService = Depends(get_ranking_service),
) -> dict:
    """Workers ordered by overall reputation score."""
    return {"leaderboard": await ranking.get_leaderboard(category, limit=limit, city=city)}


@router.get("/{worker_id}/similar")
async def similar_workers(
    worker_id: str,
    limit: int = Query(5, ge=1, le=20),
    matching: WorkerMatchingService = Depends(get_matching_service),
) -> dict:
    workers = await matching.get_similar_workers(worker_id, limit=limit)
    return {"workers": [worker_summary(w.model_dump(by_alias=True)) for w in workers]}


@router.post("/rankings/recalculate")
async def recalculate_rankings(ranking: WorkerRankingService = Depends(get_ranking_service)) -> dict:
    """Refresh ranking fields for every worker that is not banned."""
    return {"success": True, "updated": await ranking.recalculate_all_rankings()}


@router.post("/{worker_id}/ranking")
async def refresh_ranking(
    worker_id: str,
    ranking: WorkerRankingService = Depends(get_ranking_service),
) -> dict:
    """Recompute a worker's stored rating, response rate and order counters."""
    try:
        worker = await ranking.update_worker_ranking(worker_id)
    except WorkerNotFoundError:
        raise HTTPException(status_code=404, detail="Worker not found")
    return {"success": True, "worker": to_public(worker)}
