import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from settleup.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    await create_indexes()
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
        logger.info("Disconnected from MongoDB")

async def create_indexes():
    """Create database indexes."""
    # Balance edge lookups by either side of the pair
    await mongodb.db["balance_edges"].create_index("user_a")
    await mongodb.db["balance_edges"].create_index("user_b")
    await mongodb.db["balance_edges"].create_index("group_id")

    # Settlement indexes
    await mongodb.db["settlements"].create_index([("payer", 1), ("status", 1)])
    await mongodb.db["settlements"].create_index([("recipient", 1), ("status", 1)])

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
