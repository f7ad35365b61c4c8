"""Database client initialization for the geo service.

Exposes a Motor AsyncIOMotorClient and database handle for reuse. Includes a
readiness check and index bootstrap used during application startup.
"""
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, GEOSPHERE

from config import DATABASE_NAME, MONGODB_URI

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGODB_URI)
db = client[DATABASE_NAME]


async def ping_db() -> None:
    """Ping the MongoDB server to verify connectivity.

    Errors are logged without raising to avoid crashing the app on
    non-critical startup checks.
    """
    try:
        await client.admin.command("ping")
        logger.info("Connected to MongoDB database %s", DATABASE_NAME)
    except Exception as e:  # noqa: BLE001 - startup check only
        logger.error("MongoDB ping failed: %s", e)


async def ensure_indexes() -> None:
    """Create the 2dsphere and sort indexes the geo queries rely on."""
    await db.ads.create_index([("location.geo", GEOSPHERE)])
    await db.ads.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
    await db.seller_profiles.create_index([("location.geo", GEOSPHERE)])
    await db.demand_stats.create_index([("location.geo", GEOSPHERE)])
    await db.demand_stats.create_index([("geoHash", ASCENDING), ("periodStart", DESCENDING)])
    await db.workers.create_index([("location.geo", GEOSPHERE)])
    await db.workers.create_index([("categories", ASCENDING), ("status", ASCENDING)])
    await db.worker_orders.create_index([("location.geo", GEOSPHERE)])
    await db.worker_orders.create_index([("status", ASCENDING), ("urgency", DESCENDING)])
    await db.worker_responses.create_index([("orderId", ASCENDING), ("workerId", ASCENDING)])
    await db.worker_reviews.create_index([("workerId", ASCENDING)])
