"""MongoDB Client - Connection and Collection Management"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, PyMongoError

from ..config.settings import settings
from ..domain.errors import PersistenceError
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=settings.mongo_timeout_ms,
            connectTimeoutMS=settings.mongo_timeout_ms,
            socketTimeoutMS=30000,
            tz_aware=True,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures as PersistenceError so transitions can compensate"""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"MongoDB {operation} failed: {e}", extra={"action": operation})
        raise PersistenceError(
            f"Error de persistencia en {operation}",
            details={"operation": operation, "reason": str(e)}
        ) from e


def strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc.pop("_id", None)
    return doc


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Form templates and their schema
    db["form_templates"].create_index("id", unique=True)

    form_fields = db["form_fields"]
    form_fields.create_index("id", unique=True)
    form_fields.create_index([("template_id", ASCENDING), ("field_order", ASCENDING)])

    form_sections = db["form_sections"]
    form_sections.create_index("id", unique=True)
    form_sections.create_index([("template_id", ASCENDING), ("section_order", ASCENDING)])

    # Workflow definitions
    db["workflow_templates"].create_index("id", unique=True)

    workflow_steps = db["workflow_steps"]
    workflow_steps.create_index("id", unique=True)
    workflow_steps.create_index([("workflow_id", ASCENDING), ("step_order", ASCENDING)])

    # Requests
    requests = db["requests"]
    requests.create_index("id", unique=True)
    requests.create_index("request_number", unique=True)
    requests.create_index([("created_by", ASCENDING), ("status", ASCENDING)])
    requests.create_index("status")
    requests.create_index("updated_at", background=True)
    requests.create_index("group_id")

    request_steps = db["request_workflow_steps"]
    request_steps.create_index("id", unique=True)
    request_steps.create_index([("request_id", ASCENDING), ("step_order", ASCENDING)])
    request_steps.create_index([("role_name", ASCENDING), ("status", ASCENDING)])

    # Status history (append-only)
    history = db["request_status_history"]
    history.create_index("id", unique=True)
    history.create_index([("request_id", ASCENDING), ("created_at", DESCENDING)])

    # Notifications
    db["notification_events"].create_index("event_key", unique=True)
    db["notification_configs"].create_index("event_id", unique=True)

    outbox = db["notification_outbox"]
    outbox.create_index("id", unique=True)
    outbox.create_index([("status", ASCENDING), ("created_at", ASCENDING)])
    outbox.create_index("request_id")

    # User profiles
    profiles = db["profiles"]
    profiles.create_index("id", unique=True)
    profiles.create_index("roles")
    profiles.create_index([("roles", ASCENDING), ("group_ids", ASCENDING)])

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except PyMongoError as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
