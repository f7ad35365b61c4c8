"""Neighbourhood-type classification: village, suburb or city centre.

The classifier combines two kinds of evidence into three score accumulators:
place tags from reverse geocoding and the make-up of active ads within 5 km
(density, share of farmer ads, services and beauty). The winning zone drives
which home-feed blocks are shown, so availability beats precision: any
upstream failure degrades to a neutral "suburb" answer instead of an error.
"""
import asyncio
import logging
import math
from typing import Any, Dict, Optional

import config
from cache import TTLCache
from geo import encode_geohash
from models import ZONES, ZoneClassification
from services.geocoding import ReverseGeocodingService
from stores import AdStore

logger = logging.getLogger(__name__)

DENSITY_RADIUS_KM = 5
SERVICE_CATEGORIES = ["uslugi", "remont", "cleaning"]
BEAUTY_CATEGORIES = ["beauty", "barber", "manicure"]

# First present tag wins when naming the place type
_PLACE_TYPE_ORDER = ("village", "hamlet", "suburb", "neighbourhood", "city_district", "town", "city")


class InvalidZoneError(ValueError):
    """Raised for a zone name outside village / suburb / city_center."""

    def __init__(self, zone: Any) -> None:
        super().__init__(f"Invalid zone: {zone!r}")
        self.zone = zone


def place_signals(geo_data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Reduce a geocoder result to the booleans and place type used for scoring."""
    address = ((geo_data or {}).get("raw") or {}).get("address") or {}
    place_type = next((tag for tag in _PLACE_TYPE_ORDER if address.get(tag)), None)
    is_village = bool(address.get("village") or address.get("hamlet"))
    return {
        "placeType": place_type,
        "isVillage": is_village,
        "isCity": bool(address.get("city")) and not is_village,
        "hasSuburb": bool(address.get("suburb") or address.get("neighbourhood")),
        "cityName": address.get("city") or address.get("town"),
    }


def density_metrics(total: int, farmer: int, service: int, beauty: int) -> Dict[str, float]:
    def ratio(part: int) -> float:
        return part / total if total > 0 else 0.0

    return {
        "totalAds": total,
        "farmerAds": farmer,
        "serviceAds": service,
        "beautyAds": beauty,
        "farmerRatio": ratio(farmer),
        "serviceRatio": ratio(service),
        "beautyRatio": ratio(beauty),
        "adDensity": total / (math.pi * DENSITY_RADIUS_KM**2),
    }


def determine_zone(place: Dict[str, Any], metrics: Dict[str, float]) -> ZoneClassification:
    """Score the evidence and pick a zone. Pure function of its inputs."""
    village = suburb = city = 0

    if place["isVillage"]:
        village += 40
    elif place["isCity"] and not place["hasSuburb"]:
        city += 30
    elif place["hasSuburb"]:
        suburb += 25
        city += 15

    place_type = place["placeType"]
    if place_type in ("village", "hamlet"):
        village += 30
    elif place_type in ("suburb", "neighbourhood"):
        suburb += 30
    elif place_type in ("city", "city_district"):
        city += 30
    elif place_type == "town":
        suburb += 15
        city += 15

    density = metrics["adDensity"]
    if density > 50:
        city += 20
    elif density > 10:
        suburb += 15
        city += 5
    elif density < 5:
        village += 15

    if metrics["farmerRatio"] > 0.30:
        village += 25
    elif metrics["farmerRatio"] > 0.15:
        suburb += 10
        village += 10

    if metrics["beautyRatio"] > 0.10:
        city += 20
    elif metrics["beautyRatio"] > 0.05:
        suburb += 10
        city += 5

    if metrics["serviceRatio"] > 0.25:
        suburb += 15
        city += 10

    if village >= suburb and village >= city:
        zone, best = "village", village
    elif city >= suburb:
        zone, best = "city_center", city
    else:
        zone, best = "suburb", suburb

    total = village + suburb + city
    confidence = round(best / total, 2) if total > 0 else 0.33

    return ZoneClassification(
        zone=zone,
        confidence=confidence,
        source="classifier",
        scores={"village": village, "suburb": suburb, "city_center": city},
        diagnostics={**place, **{k: metrics[k] for k in ("adDensity", "farmerRatio", "beautyRatio", "serviceRatio")}},
    )


class GeoZoneClassifier:
    """Classifies coordinates into a zone, caching per geohash bucket."""

    def __init__(
        self,
        geocoder: ReverseGeocodingService,
        ads: AdStore,
        cache: Optional[TTLCache[ZoneClassification]] = None,
    ) -> None:
        self.geocoder = geocoder
        self.ads = ads
        self.cache = cache or TTLCache(config.ZONE_CACHE_TTL, config.ZONE_CACHE_SIZE)

    @staticmethod
    def cache_key(lat: float, lng: float) -> str:
        return encode_geohash(lat, lng, 5)

    async def classify(self, lat: float, lng: float) -> ZoneClassification:
        key = self.cache_key(lat, lng)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            geo_data, metrics = await asyncio.gather(
                self.geocoder.resolve(lat, lng),
                self.ad_density_metrics(lat, lng),
            )
        except Exception as e:  # noqa: BLE001 - zone only picks a layout
            logger.error("Zone classification failed for %s,%s: %s", lat, lng, e)
            return ZoneClassification(
                zone="suburb",
                confidence=0.5,
                source="fallback",
                diagnostics={"error": str(e)},
            )

        result = determine_zone(place_signals(geo_data), metrics)
        self.cache.set(key, result)
        logger.info("Classified %s,%s as %s (confidence %s)", lat, lng, result.zone, result.confidence)
        return result

    async def ad_density_metrics(self, lat: float, lng: float) -> Dict[str, float]:
        """Count active ads within 5 km, overall and per signal category."""
        active = {"status": "active"}
        total, farmer, service, beauty = await asyncio.gather(
            self.ads.count_within(lat, lng, DENSITY_RADIUS_KM, active),
            self.ads.count_within(lat, lng, DENSITY_RADIUS_KM, {**active, "isFarmerAd": True}),
            self.ads.count_within(
                lat, lng, DENSITY_RADIUS_KM, {**active, "category": {"$in": SERVICE_CATEGORIES}}
            ),
            self.ads.count_within(
                lat, lng, DENSITY_RADIUS_KM, {**active, "category": {"$in": BEAUTY_CATEGORIES}}
            ),
        )
        return density_metrics(total, farmer, service, beauty)

    @staticmethod
    def force_zone(zone: str) -> ZoneClassification:
        """Bypass scoring for debugging; never touches the cache."""
        if zone not in ZONES:
            raise InvalidZoneError(zone)
        return ZoneClassification(
            zone=zone,
            confidence=1.0,
            source="manual",
            scores={zone: 100},
            diagnostics={"forced": True},
        )
