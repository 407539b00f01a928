import logging
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import IndexModel, DESCENDING
from config import settings

logger = logging.getLogger(__name__)

client: AsyncIOMotorClient = None
_db_instance = None


class _DbProxy:
    """
    Proxy transparent vers l'instance Motor.
    Permet aux stores de recevoir `db` AVANT connect_db().
    db.collection → délégué à _db_instance.collection au moment de l'appel.
    """
    def __getattr__(self, name):
        if _db_instance is None:
            raise RuntimeError("Database not connected. Call connect_db() first.")
        return getattr(_db_instance, name)

    def __getitem__(self, name):
        if _db_instance is None:
            raise RuntimeError("Database not connected. Call connect_db() first.")
        return _db_instance[name]


db = _DbProxy()


def get_db():
    return _db_instance


async def connect_db():
    global client, _db_instance
    client = AsyncIOMotorClient(
        settings.MONGO_URL,
        serverSelectionTimeoutMS=5000,
        connectTimeoutMS=10000,
        tz_aware=True,
    )
    _db_instance = client[settings.DB_NAME]
    logger.info(f"Connected to MongoDB: {settings.DB_NAME}")
    try:
        await create_indexes()
    except Exception as e:
        logger.warning(f"Could not create indexes (non-blocking): {e}")


async def close_db():
    global client
    if client:
        client.close()
        logger.info("MongoDB connection closed")


async def create_indexes():
    collections_to_index = {
        "businesses": [
            IndexModel([("business_id", 1)], unique=True),
            IndexModel([("verification_status", 1)]),
            IndexModel([("owner_user_id", 1)], sparse=True),
            IndexModel([("application_submitted_at", 1)]),
        ],
        "business_documents": [
            IndexModel([("document_id", 1)], unique=True),
            IndexModel([("business_id", 1)]),
            IndexModel([("verification_status", 1)]),
        ],
        "verification_events": [
            IndexModel([("subject_id", 1)]),
            IndexModel([("created_at", 1)]),
        ],
        "users": [
            IndexModel([("user_id", 1)], unique=True),
        ],
        "providers": [
            IndexModel([("user_id", 1)]),
            IndexModel([("business_id", 1)]),
        ],
        "customer_profiles": [
            IndexModel([("user_id", 1)], unique=True),
        ],
        "user_settings": [
            IndexModel([("user_id", 1)], unique=True),
        ],
        "notification_templates": [
            IndexModel([("template_key", 1)], unique=True),
            IndexModel([("is_active", 1)]),
        ],
        "notification_logs": [
            IndexModel([("log_id", 1)], unique=True),
            IndexModel([("user_id", 1), ("status", 1)]),
            IndexModel([("notification_type", 1), ("status", 1)]),
            IndexModel([("channel", 1)]),
            IndexModel([("created_at", DESCENDING)]),
        ],
    }

    for collection_name, index_models in collections_to_index.items():
        try:
            await _db_instance[collection_name].create_indexes(index_models)
            logger.info(f"Indexes created for collection: {collection_name}")
        except Exception as e:
            logger.error(f"Failed to create indexes for collection {collection_name}: {e}")

    logger.info("All MongoDB indexes creation attempts completed.")
