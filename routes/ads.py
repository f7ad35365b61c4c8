"""Ad discovery endpoints backed by the progressive-radius fetcher."""
import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

import config
from dependencies import get_stores
from geo import to_float
from services.ad_search import (
    fetch_farmer_ads,
    fetch_free_ads,
    fetch_new_ads,
    fetch_similar_ads,
    fetch_trending_ads,
    search_ads,
)
from stores import Stores

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ads"])

NEARBY_FETCHERS = {
    "new": fetch_new_ads,
    "trending": fetch_trending_ads,
    "free": fetch_free_ads,
    "farmer": fetch_farmer_ads,
}


def ad_summary(ad: Dict[str, Any]) -> Dict[str, Any]:
    photos = ad.get("photos") or []
    meters = ad.get("distanceMeters")
    return {
        "id": str(ad["_id"]),
        "title": ad.get("title"),
        "price": ad.get("price"),
        "currency": ad.get("currency") or config.DEFAULT_CURRENCY,
        "photo": photos[0] if photos else None,
        "distanceKm": ad.get("distanceKm"),
        "distance": round(meters / 1000, 1) if meters is not None else None,
        "location": (ad.get("location") or {}).get("cityName"),
        "isFarmer": bool(ad.get("isFarmerAd")),
        "isFree": bool(ad.get("isFreeGiveaway")),
        "createdAt": ad.get("createdAt"),
    }


def title_keywords(title: Optional[str]) -> List[str]:
    return [word for word in (title or "").split() if len(word) > 3][:3]


@router.get("/search")
async def search(
    response: Response,
    query: str = "",
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    limit: int = Query(50, ge=1),
    stores: Stores = Depends(get_stores),
) -> dict:
    """Keyword search over ad titles and descriptions, nearest first."""
    text = query.strip()
    if len(text) < 2:
        raise HTTPException(status_code=400, detail="Query must be at least 2 characters")

    ads = await search_ads(stores.ads, text, lat, lng, limit=min(limit, 100))
    logger.debug("Search %r at %s,%s returned %d ads", text, lat, lng, len(ads))
    response.headers["Cache-Control"] = "public, max-age=60"
    return {"ok": True, "query": text, "total": len(ads), "items": [ad_summary(ad) for ad in ads]}


@router.get("/recommendations/nearby/{kind}")
async def nearby(
    kind: Literal["new", "trending", "free", "farmer"],
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    stores: Stores = Depends(get_stores),
) -> dict:
    """Carousel-style ad lists around the user."""
    ads = await NEARBY_FETCHERS[kind](stores.ads, lat, lng)
    return {"success": True, "items": [ad_summary(ad) for ad in ads]}


@router.get("/recommendations/similar/{ad_id}")
async def similar(
    ad_id: str,
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    stores: Stores = Depends(get_stores),
) -> dict:
    """Ads similar to `ad_id`, searched around the ad's own location when known."""
    ad = await stores.ads.get(ad_id)
    if ad is None:
        raise HTTPException(status_code=404, detail="Ad not found")

    location = ad.get("location") or {}
    origin_lat = to_float(location.get("lat"))
    origin_lng = to_float(location.get("lng"))
    if origin_lat is None or origin_lng is None:
        origin_lat, origin_lng = to_float(lat), to_float(lng)

    ads = await fetch_similar_ads(
        stores.ads,
        origin_lat,
        origin_lng,
        current_ad_id=ad["_id"],
        category_id=ad.get("categoryId") or ad.get("category"),
        keywords=title_keywords(ad.get("title")),
    )
    return {"success": True, "items": [ad_summary(item) for item in ads]}
