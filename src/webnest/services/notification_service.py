from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import DESCENDING, ReturnDocument

from webnest.errors import NotFoundError
from webnest.managers.logging_manager import get_logger
from webnest.models.notification_models import ClientNotification
from webnest.utils.mongo_utils import serialize_document, serialize_documents, to_object_id
from webnest.utils.pagination import build_pagination, skip_for

logger = get_logger(prefix="[NotificationService]")


class NotificationService:
    """
    Service for in-app notifications addressed to clients and developers.
    """

    def __init__(self, db):
        self.db = db
        self.collection_name = "client_notifications"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def create(self, notification: ClientNotification) -> str:
        """
        Store a notification.

        When `dedupe_key` is set the write is an upsert on that key, so delivering the same
        system notification twice leaves exactly one document.
        """
        doc = notification.model_dump()
        if doc.get("dedupe_key") is None:
            doc.pop("dedupe_key", None)
        if notification.dedupe_key:
            result = await self.collection.update_one(
                {"dedupe_key": notification.dedupe_key},
                {"$setOnInsert": doc},
                upsert=True,
            )
            if result.upserted_id is None:
                logger.info("Notification %s already delivered, skipping", notification.dedupe_key)
                return notification.dedupe_key
            return str(result.upserted_id)

        result = await self.collection.insert_one(doc)
        return str(result.inserted_id)

    async def list_for_user(
        self,
        user_id: str,
        page: int,
        limit: int,
        is_read: Optional[bool] = None,
        type: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"user_id": user_id}
        if is_read is not None:
            query["is_read"] = is_read
        if type:
            query["type"] = type
        if priority:
            query["priority"] = priority

        cursor = self.collection.find(query).sort("created_at", DESCENDING).skip(skip_for(page, limit)).limit(limit)
        notifications = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(query)
        unread_count = await self.collection.count_documents({"user_id": user_id, "is_read": False})
        return {
            "success": True,
            "data": serialize_documents(notifications),
            "unreadCount": unread_count,
            "pagination": build_pagination(page, limit, total),
        }

    async def mark_read(self, user_id: str, notification_id: str) -> Dict[str, Any]:
        notification = await self.collection.find_one_and_update(
            {"_id": to_object_id(notification_id, "Notification"), "user_id": user_id},
            {"$set": {"is_read": True, "read_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        if not notification:
            raise NotFoundError("Notification not found")
        return serialize_document(notification)

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.collection.update_many(
            {"user_id": user_id, "is_read": False},
            {"$set": {"is_read": True, "read_at": datetime.now(timezone.utc)}},
        )
        return result.modified_count

    async def delete(self, user_id: str, notification_id: str) -> None:
        result = await self.collection.delete_one(
            {"_id": to_object_id(notification_id, "Notification"), "user_id": user_id}
        )
        if result.deleted_count == 0:
            raise NotFoundError("Notification not found")
