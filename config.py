"""Central configuration for the Ketmar marketplace geo service.

Values are read from environment variables with safe defaults for local
development. For production, set variables explicitly to avoid surprises.
"""
import os

# Database configuration
MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
DATABASE_NAME: str = os.getenv("DATABASE_NAME", "ketmar")

# Reverse geocoding (Nominatim-compatible endpoint)
NOMINATIM_URL: str = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org").rstrip("/")
GEOCODER_USER_AGENT: str = os.getenv("GEOCODER_USER_AGENT", "ketmar-geo/1.0")
GEOCODER_TIMEOUT: float = float(os.getenv("GEOCODER_TIMEOUT", "5"))
GEOCODER_LANGUAGE: str = os.getenv("GEOCODER_LANGUAGE", "ru")

# Business calendar: seasonal blocks follow the local month, not UTC
BUSINESS_TIMEZONE: str = os.getenv("BUSINESS_TIMEZONE", "Europe/Minsk")
DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "BYN")

# Caches (seconds / entries)
ZONE_CACHE_TTL: float = float(os.getenv("ZONE_CACHE_TTL", str(30 * 60)))
ZONE_CACHE_SIZE: int = int(os.getenv("ZONE_CACHE_SIZE", "1000"))
FEED_CACHE_TTL: float = float(os.getenv("FEED_CACHE_TTL", str(5 * 60)))
FEED_CACHE_SIZE: int = int(os.getenv("FEED_CACHE_SIZE", "500"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Comma-separated list; "*" keeps the mini-app dev server working
CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
