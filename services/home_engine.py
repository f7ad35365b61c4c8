"""Zone-driven home feed assembly.

Resolves the user's zone, walks the zone's ordered block list, fetches each
block through its declared strategy and caches the assembled feed per
geohash bucket and zone. A failing block degrades to an empty list without
affecting its siblings.
"""
import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

import config
from cache import TTLCache
from geo import encode_geohash, to_float
from models import Block, FeedMeta, HomeFeedResult, ZoneClassification, as_utc
from services.ad_search import exclude_condition, fetch_ads_progressive_radius, keyword_condition
from services.home_blocks import (
    BLOCK_CONFIGS,
    ZONE_BLOCK_PRIORITY,
    ZONE_UI_CONFIGS,
    AdFetch,
    BannerCardFetch,
    BlockConfig,
    DemandFetch,
    FairsFetch,
    FetchStrategy,
    LocalDemandFetch,
    ProfileRoleFetch,
    StaticFetch,
)
from services.zone_classifier import GeoZoneClassifier
from stores import Stores

logger = logging.getLogger(__name__)

ALWAYS_SHOWN = ("banners", "banner_card")
# (radius km, geohash prefix length) rings for local demand chips
LOCAL_DEMAND_RINGS = ((0.3, 5), (1, 5), (3, 4), (5, 4), (10, 3), (20, 3))


class MissingLocationError(ValueError):
    """Raised when no zone can be inferred because coordinates are missing."""


def build_ad_filter(strategy: AdFetch) -> Dict[str, Any]:
    """Combine the strategy's constraints into one Mongo filter."""
    parts: List[Dict[str, Any]] = []
    if strategy.base_filter:
        parts.append(strategy.base_filter)
    if strategy.category_filter and strategy.search_terms:
        keywords = keyword_condition(strategy.search_terms)
        if strategy.match_any:
            parts.append({"$or": [strategy.category_filter, keywords]})
        else:
            parts.extend([strategy.category_filter, keywords])
    elif strategy.category_filter:
        parts.append(strategy.category_filter)
    elif strategy.search_terms:
        parts.append(keyword_condition(strategy.search_terms))
    if strategy.exclude_terms:
        parts.append(exclude_condition(strategy.exclude_terms))

    if not parts:
        return {}
    if len(parts) == 1:
        return dict(parts[0])
    return {"$and": parts}


def ad_card(ad: Mapping[str, Any], strategy: AdFetch) -> Dict[str, Any]:
    """Project an ad document to the compact card the carousel renders."""
    if strategy.match_any:
        badge, badge_type = ("Фермер", "farmer") if ad.get("isFarmerAd") else ("С огорода", "garden")
    elif ad.get("isFreeGiveaway"):
        badge, badge_type = "Даром", "free"
    else:
        badge, badge_type = None, None

    photos = ad.get("photos") or []
    distance_km = ad.get("distanceKm")
    location = ad.get("location") or {}
    return {
        "id": str(ad["_id"]),
        "title": ad.get("title"),
        "price": ad.get("price"),
        "currency": ad.get("currency") or config.DEFAULT_CURRENCY,
        "photo": photos[0] if photos else None,
        "distance": round(distance_km, 1) if distance_km is not None else None,
        "distanceKm": distance_km,
        "location": location.get("cityName"),
        "isFarmer": bool(ad.get("isFarmerAd")),
        "isFree": bool(ad.get("isFreeGiveaway")),
        "hasDiscount": bool(ad.get("priceHistory")),
        "badge": badge,
        "badgeType": badge_type,
        "createdAt": ad.get("createdAt"),
    }


def _profile_name(profile: Mapping[str, Any]) -> Optional[str]:
    return profile.get("storeName") or profile.get("displayName") or profile.get("name")


def _profile_roles(profile: Mapping[str, Any]) -> List[str]:
    return profile.get("roles") or ([profile["role"]] if profile.get("role") else [])


def _first_category(profile: Mapping[str, Any], default: str) -> str:
    categories = profile.get("categories") or []
    return categories[0] if categories else default


class HomeDynamicEngine:
    """Builds the home feed for a location."""

    max_items_per_block = 30
    min_items_for_carousel = 4

    def __init__(
        self,
        classifier: GeoZoneClassifier,
        stores: Stores,
        cache: Optional[TTLCache[HomeFeedResult]] = None,
        business_timezone: str = config.BUSINESS_TIMEZONE,
        block_configs: Mapping[str, BlockConfig] = BLOCK_CONFIGS,
        zone_priority: Mapping[str, Sequence[str]] = ZONE_BLOCK_PRIORITY,
    ) -> None:
        self.classifier = classifier
        self.stores = stores
        self.cache = cache or TTLCache(config.FEED_CACHE_TTL, config.FEED_CACHE_SIZE)
        self.tz = ZoneInfo(business_timezone)
        self.block_configs = block_configs
        self.zone_priority = zone_priority

    @staticmethod
    def cache_key(lat: float, lng: float, zone: str) -> str:
        return f"{encode_geohash(lat, lng, 5)}:{zone}"

    async def resolve_zone(
        self, lat: Optional[float], lng: Optional[float], force_zone: Optional[str]
    ) -> ZoneClassification:
        if force_zone is not None:
            return self.classifier.force_zone(force_zone)
        if lat is None or lng is None:
            raise MissingLocationError("Valid lat and lng parameters are required")
        return await self.classifier.classify(lat, lng)

    def select_blocks(self, zone: str, now: datetime) -> List[str]:
        """Zone ordering minus blocks that are out of season this month."""
        month = now.astimezone(self.tz).month
        names = self.zone_priority.get(zone) or self.zone_priority["suburb"]
        return [
            name
            for name in names
            if name in self.block_configs and self.block_configs[name].is_in_season(month)
        ]

    async def get_home_config(
        self,
        lat: Any,
        lng: Any,
        radius_km: float = 50,
        user_id: Optional[str] = None,
        force_zone: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> HomeFeedResult:
        """Assemble (or serve from cache) the feed for one location.

        A forced zone skips the cache entirely, both read and write, so debug
        requests never leak into what regular users see.

        Raises:
            InvalidZoneError: `force_zone` is not a known zone.
            MissingLocationError: no coordinates and no forced zone.
        """
        now = now or datetime.now(timezone.utc)
        lat, lng = to_float(lat), to_float(lng)
        classification = await self.resolve_zone(lat, lng, force_zone)
        zone = classification.zone
        forced = force_zone is not None

        key = self.cache_key(lat, lng, zone) if not forced else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                meta = cached.meta.model_copy(update={"diagnostics": classification.diagnostics})
                return cached.model_copy(
                    update={"zone": zone, "confidence": classification.confidence, "meta": meta}
                )

        names = self.select_blocks(zone, now)
        blocks = await asyncio.gather(
            *(self.build_block(name, self.block_configs[name], lat, lng, radius_km, now) for name in names)
        )
        result = HomeFeedResult(
            zone=zone,
            confidence=classification.confidence,
            blocks=[b for b in blocks if b.items or b.type in ALWAYS_SHOWN],
            meta=FeedMeta(
                generated_at=now.isoformat(),
                location={"lat": lat, "lng": lng},
                radius_km=radius_km,
                diagnostics=classification.diagnostics,
            ),
        )
        if key is not None:
            self.cache.set(key, result)
        logger.debug("Built home feed for %s,%s zone=%s user=%s", lat, lng, zone, user_id)
        return result

    async def build_block(
        self,
        name: str,
        block: BlockConfig,
        lat: Optional[float],
        lng: Optional[float],
        radius_km: float,
        now: datetime,
    ) -> Block:
        try:
            items = await self.fetch_items(block.fetch, lat, lng, radius_km, now)
        except Exception as e:  # noqa: BLE001 - one block must not fail the feed
            logger.error("Block %s failed at %s,%s: %s", name, lat, lng, e)
            items = []
        return Block(
            type=block.display,
            id=name,
            title=block.title,
            subtitle=block.subtitle,
            icon=block.icon,
            accent_color=block.accent_color,
            link=block.link,
            gradient=list(block.gradient) if block.gradient else None,
            instruction=block.instruction,
            items=list(items)[: self.max_items_per_block],
            filters=list(block.filters) or None,
        )

    async def fetch_items(
        self,
        strategy: FetchStrategy,
        lat: Optional[float],
        lng: Optional[float],
        radius_km: float,
        now: datetime,
    ) -> List[Dict[str, Any]]:
        match strategy:
            case StaticFetch(items=items):
                return [dict(item) for item in items]
            case BannerCardFetch():
                return []
            case AdFetch():
                return await self.fetch_ads(strategy, lat, lng)
            case ProfileRoleFetch(role="SHOP"):
                return await self.fetch_shops(lat, lng, radius_km)
            case ProfileRoleFetch(role=role):
                return await self.fetch_bloggers(role, lat, lng, radius_km)
            case DemandFetch(limit=limit):
                return await self.fetch_demand(lat, lng, radius_km, limit)
            case LocalDemandFetch():
                return await self.fetch_local_demand(strategy, lat, lng, now)
            case FairsFetch(limit=limit):
                return await self.fetch_fairs(now, limit)
        raise TypeError(f"Unsupported fetch strategy: {strategy!r}")

    async def fetch_ads(self, strategy: AdFetch, lat: Optional[float], lng: Optional[float]) -> List[Dict[str, Any]]:
        ads = await fetch_ads_progressive_radius(
            self.stores.ads,
            lat,
            lng,
            filter=build_ad_filter(strategy),
            min_items=self.min_items_for_carousel,
            max_items=self.max_items_per_block,
            sort=strategy.sort,
        )
        return [ad_card(ad, strategy) for ad in ads]

    async def fetch_shops(self, lat: Optional[float], lng: Optional[float], radius_km: float) -> List[Dict[str, Any]]:
        shops = await self.stores.seller_profiles.find_by_role("SHOP", lat, lng, radius_km, self.max_items_per_block)
        return [
            {
                "id": str(shop["_id"]),
                "name": _profile_name(shop),
                "logo": shop.get("storeLogo") or shop.get("avatar"),
                "category": _first_category(shop, "Магазин"),
                "rating": shop.get("rating") or (shop.get("ratings") or {}).get("score") or 0,
                "reviewCount": shop.get("reviewCount") or (shop.get("ratings") or {}).get("count") or 0,
                "roles": _profile_roles(shop),
            }
            for shop in shops
        ]

    async def fetch_bloggers(
        self, role: str, lat: Optional[float], lng: Optional[float], radius_km: float
    ) -> List[Dict[str, Any]]:
        profiles = await self.stores.seller_profiles.find_by_role(role, lat, lng, radius_km, self.max_items_per_block)
        return [
            {
                "id": str(profile["_id"]),
                "name": _profile_name(profile),
                "avatar": profile.get("storeLogo") or profile.get("avatar"),
                "specialty": _first_category(profile, "Авторский бренд"),
                "socialLinks": profile.get("socialLinks") or {},
                "roles": _profile_roles(profile),
            }
            for profile in profiles
        ]

    async def fetch_demand(
        self, lat: Optional[float], lng: Optional[float], radius_km: float, limit: int
    ) -> List[Dict[str, Any]]:
        demands = await self.stores.demand.find_near(lat, lng, radius_km, limit)
        return [
            {"id": str(d["_id"]), "query": d.get("query"), "category": d.get("category"), "count": d.get("searchCount", 0)}
            for d in demands
        ]

    async def fetch_local_demand(
        self, strategy: LocalDemandFetch, lat: Optional[float], lng: Optional[float], now: datetime
    ) -> List[Dict[str, Any]]:
        """Widen geohash buckets until at least four usable demand chips appear."""
        if lat is None or lng is None:
            return []
        since = now - timedelta(days=7)
        demands: List[Dict[str, Any]] = []
        for _radius_km, prefix_len in LOCAL_DEMAND_RINGS:
            found = await self.stores.demand.find_by_geohash_prefix(
                encode_geohash(lat, lng, prefix_len),
                since,
                strategy.exclude_categories,
                min_searches=2,
                limit=12,
            )
            usable = [
                d
                for d in found
                if not any(term in (d.get("normalizedQuery") or "").lower() for term in strategy.exclude_terms)
            ]
            if len(usable) >= 4:
                demands = usable
                break
            if len(usable) > len(demands):
                demands = usable

        best: Dict[str, Dict[str, Any]] = {}
        for d in demands:
            query = d.get("normalizedQuery")
            if not query:
                continue
            if query not in best or d.get("searchesCount", 0) > best[query].get("searchesCount", 0):
                best[query] = d

        return [
            {
                "id": str(d["_id"]),
                "query": query,
                "displayQuery": query[:1].upper() + query[1:],
                "category": d.get("detectedCategoryId"),
                "count": d.get("searchesCount", 0),
                "isHot": bool(d.get("isHighDemand")) or d.get("searchesCount", 0) >= 10,
            }
            for query, d in list(best.items())[: strategy.limit]
        ]

    async def fetch_fairs(self, now: datetime, limit: int) -> List[Dict[str, Any]]:
        seasons = await self.stores.seasons.find_active(now, limit)
        fairs = []
        for s in seasons:
            end = as_utc(s.get("endDate"))
            days = math.ceil((end - now).total_seconds() / 86400) if end else None
            fairs.append(
                {
                    "id": str(s["_id"]),
                    "name": s.get("name"),
                    "description": s.get("description"),
                    "emoji": s.get("emoji"),
                    "color": s.get("color"),
                    "daysRemaining": days,
                }
            )
        return fairs

    @staticmethod
    def get_zone_ui_config(zone: str) -> Dict[str, Any]:
        return dict(ZONE_UI_CONFIGS.get(zone) or ZONE_UI_CONFIGS["suburb"])
