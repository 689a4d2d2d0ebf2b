"""Notification Repository - Event configuration and notification outbox"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection, translate_errors, strip_id
from ..domain.models import NotificationEvent, NotificationConfig, NotificationOutbox
from ..domain.enums import NotificationStatus
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationRepository:
    """Repository for notification events, their configs and the outbox"""

    def __init__(
        self,
        events: Optional[Collection] = None,
        configs: Optional[Collection] = None,
        outbox: Optional[Collection] = None
    ):
        self._events: Collection = events if events is not None else get_collection("notification_events")
        self._configs: Collection = configs if configs is not None else get_collection("notification_configs")
        self._outbox: Collection = outbox if outbox is not None else get_collection("notification_outbox")

    def get_event(self, event_key: str) -> Optional[NotificationEvent]:
        with translate_errors("get_notification_event"):
            doc = self._events.find_one({"event_key": event_key})
        if doc is None:
            return None
        return NotificationEvent.model_validate(strip_id(doc))

    def get_config(self, event_id: str) -> Optional[NotificationConfig]:
        with translate_errors("get_notification_config"):
            doc = self._configs.find_one({"event_id": event_id})
        if doc is None:
            return None
        return NotificationConfig.model_validate(strip_id(doc))

    def upsert_event(self, event: NotificationEvent, config: NotificationConfig) -> None:
        """Create or replace an event together with its config"""
        event_doc = event.model_dump(mode="json")
        event_doc["_id"] = event.id
        config_doc = config.model_dump(mode="json")
        config_doc["_id"] = config.event_id

        with translate_errors("upsert_notification_event"):
            self._events.replace_one({"event_key": event.event_key}, event_doc, upsert=True)
            self._configs.replace_one({"event_id": config.event_id}, config_doc, upsert=True)
        logger.info(f"Upserted notification event: {event.event_key}", extra={"event_key": event.event_key})

    def create_outbox_entry(self, entry: NotificationOutbox) -> NotificationOutbox:
        """Enqueue a resolved notification for delivery"""
        doc = entry.model_dump(mode="json")
        doc["_id"] = entry.id

        with translate_errors("create_outbox_entry"):
            self._outbox.insert_one(doc)
        logger.info(
            f"Enqueued notification: {entry.event_key}",
            extra={"request_id": entry.request_id, "event_key": entry.event_key}
        )
        return entry

    def get_pending(self, limit: int = 100) -> List[NotificationOutbox]:
        """Entries waiting for the delivery worker, oldest first"""
        with translate_errors("get_pending_notifications"):
            docs = list(
                self._outbox.find({"status": NotificationStatus.PENDING.value})
                .sort("created_at", ASCENDING)
                .limit(limit)
            )
        return [NotificationOutbox.model_validate(strip_id(doc)) for doc in docs]
