"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection
from .schema_repo import SchemaRepository
from .workflow_repo import WorkflowRepository
from .request_repo import RequestRepository
from .history_repo import HistoryRepository
from .notification_repo import NotificationRepository
from .user_repo import UserRepository

__all__ = [
    "get_database",
    "get_collection",
    "SchemaRepository",
    "WorkflowRepository",
    "RequestRepository",
    "HistoryRepository",
    "NotificationRepository",
    "UserRepository",
]
