"""Home feed configuration endpoints used by the mini-app front page."""
import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from cache import TTLCache
from dependencies import get_classifier, get_geocoder, get_home_engine, get_label_cache
from geo import encode_geohash, in_range, to_float
from models import GeoPoint
from services.geocoding import ReverseGeocodingService
from services.home_blocks import ZONE_DESCRIPTORS
from services.home_engine import HomeDynamicEngine
from services.zone_classifier import GeoZoneClassifier, InvalidZoneError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/home-config", tags=["home"])

DEFAULT_LOCATION_LABEL = "Ваш район"
CACHE_CONTROL = "private, max-age=120, stale-while-revalidate=300"
# ~1.2 km cells
LABEL_GEOHASH_PRECISION = 6


async def location_label(
    geocoder: ReverseGeocodingService,
    lat: Optional[float],
    lng: Optional[float],
    labels: Optional[TTLCache[str]] = None,
) -> str:
    """Human-readable place name; a generic label whenever the geocoder can't help."""
    if lat is None or lng is None:
        return DEFAULT_LOCATION_LABEL
    key = encode_geohash(lat, lng, LABEL_GEOHASH_PRECISION)
    if labels is not None:
        cached = labels.get(key)
        if cached is not None:
            return cached
    try:
        geo_data = await geocoder.resolve(lat, lng)
    except Exception as e:  # noqa: BLE001 - the label is cosmetic
        logger.warning("Location label lookup failed for %s,%s: %s", lat, lng, e)
        return DEFAULT_LOCATION_LABEL
    geo_data = geo_data or {}
    label = geo_data.get("label") or geo_data.get("city")
    if not label:
        return DEFAULT_LOCATION_LABEL
    if labels is not None:
        labels.set(key, label)
    return label


@router.get("")
async def home_config(
    response: Response,
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    radius_km: float = Query(10, alias="radiusKm", gt=0),
    user_id: Optional[str] = Query(None, alias="userId"),
    zone: Optional[str] = None,
    engine: HomeDynamicEngine = Depends(get_home_engine),
    geocoder: ReverseGeocodingService = Depends(get_geocoder),
    labels: TTLCache[str] = Depends(get_label_cache),
) -> Dict[str, Any]:
    """Return the zone-specific block layout for a location.

    Coordinates are required unless `zone` forces the layout.
    """
    user_lat, user_lng = to_float(lat), to_float(lng)
    if user_lat is None or user_lng is None:
        if zone is None:
            raise HTTPException(status_code=400, detail="Valid lat and lng parameters are required")
        user_lat = user_lng = None
    elif not in_range(user_lat, user_lng):
        raise HTTPException(status_code=400, detail="Invalid coordinates")

    try:
        feed, label = await asyncio.gather(
            engine.get_home_config(user_lat, user_lng, radius_km=radius_km, user_id=user_id, force_zone=zone),
            location_label(geocoder, user_lat, user_lng, labels),
        )
    except InvalidZoneError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response.headers["Cache-Control"] = CACHE_CONTROL
    return {
        "success": True,
        "zone": feed.zone,
        "confidence": feed.confidence,
        "location": label,
        "blocks": [block.to_json() for block in feed.blocks],
        "uiConfig": engine.get_zone_ui_config(feed.zone),
        "meta": feed.meta.to_json(),
    }


@router.get("/zones")
async def zones() -> dict:
    """List the three zones with display names."""
    return {"success": True, "zones": [dict(z) for z in ZONE_DESCRIPTORS]}


@router.post("/debug")
async def debug(point: GeoPoint, classifier: GeoZoneClassifier = Depends(get_classifier)) -> dict:
    """Run the classifier for a point and expose its scores and signals."""
    classification = await classifier.classify(point.lat, point.lng)
    return {"success": True, "classification": classification.to_json()}
