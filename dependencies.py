"""Shared service instances handed to route handlers via FastAPI `Depends`.

Each getter builds its object once per process; tests replace them through
`app.dependency_overrides`.
"""
from functools import lru_cache

import config
from cache import TTLCache
from database import db
from services.geocoding import ReverseGeocodingService
from services.home_engine import HomeDynamicEngine
from services.worker_matching import WorkerMatchingService
from services.worker_ranking import WorkerRankingService
from services.zone_classifier import GeoZoneClassifier
from stores import Stores


@lru_cache
def get_stores() -> Stores:
    return Stores(db)


@lru_cache
def get_geocoder() -> ReverseGeocodingService:
    return ReverseGeocodingService()


@lru_cache
def get_classifier() -> GeoZoneClassifier:
    return GeoZoneClassifier(get_geocoder(), get_stores().ads)


@lru_cache
def get_home_engine() -> HomeDynamicEngine:
    return HomeDynamicEngine(get_classifier(), get_stores())


@lru_cache
def get_matching_service() -> WorkerMatchingService:
    return WorkerMatchingService(get_stores())


@lru_cache
def get_ranking_service() -> WorkerRankingService:
    return WorkerRankingService(get_stores())


@lru_cache
def get_label_cache() -> TTLCache[str]:
    return TTLCache(config.ZONE_CACHE_TTL, config.ZONE_CACHE_SIZE)
