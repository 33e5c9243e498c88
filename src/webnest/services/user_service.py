import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pymongo import DESCENDING, ReturnDocument

from webnest.errors import BusinessRuleError, NotFoundError
from webnest.managers.logging_manager import get_logger
from webnest.models.account_models import UserUpdateRequest
from webnest.models.project_models import OPEN_WORK_STATUSES
from webnest.services.analytics_service import user_stats_pipeline
from webnest.services.email_service import EmailService
from webnest.utils.mongo_utils import serialize_document, serialize_documents, to_object_id
from webnest.utils.pagination import build_pagination, skip_for

logger = get_logger(prefix="[UserService]")

PREMIUM_PLAN = "Premium"


class UserService:
    """
    Admin management of client accounts.
    """

    def __init__(self, db, email_service: EmailService):
        self.db = db
        self.email_service = email_service
        self.collection_name = "users"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def list_users(
        self,
        page: int,
        limit: int,
        role: Optional[str] = None,
        is_premium: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if role:
            query["role"] = role
        if is_premium is not None:
            query["is_premium"] = is_premium
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"name": pattern}, {"email": pattern}, {"company": pattern}]

        cursor = self.collection.find(query).sort("created_at", DESCENDING).skip(skip_for(page, limit)).limit(limit)
        users = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(query)
        return {
            "success": True,
            "data": serialize_documents(users),
            "pagination": build_pagination(page, limit, total),
        }

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        """User profile with the 5 latest projects and 10 latest activity entries."""
        user = await self.collection.find_one({"_id": to_object_id(user_id, "User")})
        if not user:
            raise NotFoundError("User not found")

        projects = (
            await self.db.get_collection("projects")
            .find({"client_id": user["_id"]}, {"title": 1, "status": 1, "budget": 1, "created_at": 1})
            .sort("created_at", DESCENDING)
            .limit(5)
            .to_list(length=5)
        )
        activity = (
            await self.db.get_collection("activity_logs")
            .find({"user_id": user["_id"], "user_type": "User"})
            .sort("created_at", DESCENDING)
            .limit(10)
            .to_list(length=10)
        )
        return {
            "user": serialize_document(user),
            "projects": serialize_documents(projects),
            "recent_activity": serialize_documents(activity),
        }

    async def update_user(self, user_id: str, request: UserUpdateRequest) -> Dict[str, Any]:
        fields = request.model_dump(exclude_unset=True)
        if "email" in fields:
            fields["email"] = fields["email"].lower()
        fields["updated_at"] = datetime.now(timezone.utc)
        user = await self.collection.find_one_and_update(
            {"_id": to_object_id(user_id, "User")},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        if not user:
            raise NotFoundError("User not found")
        return serialize_document(user)

    async def delete_user(self, user_id: str) -> None:
        """Delete a client unless one of their projects is still being worked on."""
        oid = to_object_id(user_id, "User")
        if not await self.collection.find_one({"_id": oid}, {"_id": 1}):
            raise NotFoundError("User not found")

        active = await self.db.get_collection("projects").count_documents(
            {"client_id": oid, "status": {"$in": list(OPEN_WORK_STATUSES)}}
        )
        if active > 0:
            raise BusinessRuleError("Cannot delete user with active projects")

        await self.collection.delete_one({"_id": oid})
        logger.info("Deleted user %s", user_id)

    async def stats(self) -> Dict[str, Any]:
        rows = await self.collection.aggregate(user_stats_pipeline()).to_list(length=None)
        return rows[0] if rows else {}

    async def promote_user(self, user_id: str, duration: int = 30) -> Dict[str, Any]:
        expires_at = datetime.now(timezone.utc) + timedelta(days=duration)
        user = await self.collection.find_one_and_update(
            {"_id": to_object_id(user_id, "User")},
            {"$set": {"is_premium": True, "premium_expires_at": expires_at, "role": "premiumClient"}},
            return_document=ReturnDocument.AFTER,
        )
        if not user:
            raise NotFoundError("User not found")

        try:
            await self.email_service.send_subscription_confirmation(
                user["email"], user.get("name", ""), PREMIUM_PLAN, f"{duration} days"
            )
        except Exception as e:
            logger.error("Subscription email to user %s failed: %s", user_id, e)

        logger.info("User %s promoted to premium for %d days", user_id, duration)
        return serialize_document(user)
