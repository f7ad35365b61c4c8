"""Progressive-radius ad search.

Widens a nearest-first geo query through fixed radius steps until enough
ads are found, then pads from a global (non-geo) query if the neighbourhood
is too sparse. Dense areas stop early; sparse areas still get a full
carousel.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from geo import document_coordinates, haversine_km, to_float
from stores import AdStore, Sort

logger = logging.getLogger(__name__)

RADIUS_STEPS: tuple[float, ...] = (0.3, 0.5, 1, 5, 10, 20, 50)
DEFAULT_SORT: Dict[str, int] = {"createdAt": -1}
TRENDING_SORT: Dict[str, int] = {"views": -1, "favorites": -1}


def base_query(filter: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Active ads with at least one photo, narrowed by the caller's filter."""
    return {"status": "active", "photos": {"$exists": True, "$ne": []}, **(filter or {})}


def keyword_regexes(terms: Iterable[str]) -> List[re.Pattern]:
    return [re.compile(re.escape(term), re.IGNORECASE) for term in terms if term]


def keyword_condition(terms: Sequence[str]) -> Dict[str, Any]:
    """Match ads whose title or description contains any of `terms`."""
    regexes = keyword_regexes(terms)
    return {"$or": [{"title": {"$in": regexes}}, {"description": {"$in": regexes}}]}


def exclude_condition(terms: Sequence[str]) -> Dict[str, Any]:
    """Reject ads whose title or description contains any of `terms`."""
    regexes = keyword_regexes(terms)
    return {"$and": [{"title": {"$nin": regexes}}, {"description": {"$nin": regexes}}]}


def _distance_key(ad: Dict[str, Any]) -> tuple[bool, float]:
    distance = ad.get("distanceKm")
    return distance is None, distance if distance is not None else 0.0


async def fetch_ads_global(
    store: AdStore,
    filter: Optional[Dict[str, Any]] = None,
    max_items: int = 30,
    sort: Optional[Sort] = None,
    exclude_ids: Sequence[Any] = (),
) -> List[Dict[str, Any]]:
    """Non-geo query sorted by the caller's order only."""
    query = base_query(filter)
    if exclude_ids:
        query["$and"] = [*query.get("$and", []), {"_id": {"$nin": list(exclude_ids)}}]
    return await store.find(query, sort=sort or DEFAULT_SORT, limit=max_items)


async def fetch_ads_progressive_radius(
    store: AdStore,
    lat: Any,
    lng: Any,
    filter: Optional[Dict[str, Any]] = None,
    min_items: int = 6,
    max_items: int = 30,
    sort: Optional[Sort] = None,
    radius_steps: Sequence[float] = RADIUS_STEPS,
) -> List[Dict[str, Any]]:
    """Return up to `max_items` ads ordered by distance, each with `distanceKm`.

    Radius steps run sequentially and stop as soon as `min_items` (or
    `max_items`) ads have been collected. When all steps leave the result
    short of `min_items`, the remainder is padded from a global query that
    excludes ads already seen; padded ads get a haversine distance when they
    carry coordinates and `None` otherwise.

    Without usable coordinates the geo phase is skipped and the global query
    result is returned as is.
    """
    sort = sort or DEFAULT_SORT
    origin_lat, origin_lng = to_float(lat), to_float(lng)
    if origin_lat is None or origin_lng is None:
        return await fetch_ads_global(store, filter, max_items, sort)

    query = base_query(filter)
    ads: List[Dict[str, Any]] = []
    seen: set[str] = set()

    for radius_km in sorted(radius_steps):
        if len(ads) >= max_items:
            break
        try:
            batch = await store.geo_near(origin_lat, origin_lng, radius_km, query, sort, max_items)
        except Exception as e:  # noqa: BLE001 - a failing ring must not sink the search
            logger.error("Progressive radius query failed at %skm (%s,%s): %s", radius_km, lat, lng, e)
            continue

        for ad in batch:
            key = str(ad["_id"])
            if key in seen:
                continue
            seen.add(key)
            meters = ad.get("distanceMeters")
            ad["distanceKm"] = meters / 1000 if meters is not None else None
            ads.append(ad)

        if len(ads) >= min_items:
            break

    missing = max_items - len(ads)
    if len(ads) < min_items and missing > 0:
        padding = await fetch_ads_global(
            store, filter, missing, sort, exclude_ids=[ad["_id"] for ad in ads]
        )
        for ad in padding:
            coords = document_coordinates(ad)
            if coords is None:
                ad["distanceKm"] = None
            else:
                ad["distanceKm"] = haversine_km(origin_lat, origin_lng, *coords)
                ad["distanceMeters"] = ad["distanceKm"] * 1000
            ads.append(ad)
        logger.debug("Padded %d ads from global query for %s,%s", len(padding), lat, lng)

    ads.sort(key=_distance_key)
    return ads[:max_items]


async def fetch_new_ads(store: AdStore, lat: Any, lng: Any) -> List[Dict[str, Any]]:
    return await fetch_ads_progressive_radius(store, lat, lng, min_items=6, max_items=30)


async def fetch_trending_ads(store: AdStore, lat: Any, lng: Any) -> List[Dict[str, Any]]:
    return await fetch_ads_progressive_radius(
        store, lat, lng, sort=TRENDING_SORT, min_items=6, max_items=25
    )


async def fetch_free_ads(store: AdStore, lat: Any, lng: Any) -> List[Dict[str, Any]]:
    return await fetch_ads_progressive_radius(
        store, lat, lng, filter={"isFreeGiveaway": True}, min_items=4, max_items=20
    )


async def fetch_farmer_ads(store: AdStore, lat: Any, lng: Any) -> List[Dict[str, Any]]:
    return await fetch_ads_progressive_radius(
        store, lat, lng, filter={"isFarmerAd": True}, min_items=4, max_items=20
    )


async def fetch_similar_ads(
    store: AdStore,
    lat: Any,
    lng: Any,
    current_ad_id: Any,
    category_id: str,
    keywords: Sequence[str] = (),
) -> List[Dict[str, Any]]:
    """Ads from the same category (or sharing title keywords), nearest first."""
    alternatives: List[Dict[str, Any]] = [{"categoryId": category_id}, {"category": category_id}]
    if keywords:
        alternatives.append({"title": {"$in": keyword_regexes(keywords)}})
    filter = {"_id": {"$ne": current_ad_id}, "$or": alternatives}
    return await fetch_ads_progressive_radius(
        store, lat, lng, filter=filter, sort={"views": -1, "createdAt": -1}, min_items=4, max_items=15
    )


async def search_ads(
    store: AdStore, text: str, lat: Any, lng: Any, limit: int = 50
) -> List[Dict[str, Any]]:
    """Keyword search over title/description, nearest matches first."""
    return await fetch_ads_progressive_radius(
        store,
        lat,
        lng,
        filter=keyword_condition([text.strip()]),
        min_items=min(10, limit),
        max_items=limit,
    )
