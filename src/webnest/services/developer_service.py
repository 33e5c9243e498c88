import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import DESCENDING, ReturnDocument

from webnest.errors import BusinessRuleError, NotFoundError
from webnest.managers.logging_manager import get_logger
from webnest.models.account_models import DeveloperUpdateRequest, VerifyDeveloperRequest
from webnest.models.project_models import OPEN_WORK_STATUSES
from webnest.services.analytics_service import developer_stats_pipeline
from webnest.utils.mongo_utils import serialize_document, serialize_documents, to_object_id
from webnest.utils.pagination import build_pagination, skip_for

logger = get_logger(prefix="[DeveloperService]")

DEVELOPER_ROLES = ("developer", "leadDeveloper")


class DeveloperService:
    """
    Admin management of developer accounts.
    """

    def __init__(self, db):
        self.db = db
        self.collection_name = "developers"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def list_developers(
        self,
        page: int,
        limit: int,
        is_verified: Optional[bool] = None,
        is_active: Optional[bool] = None,
        skills: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if is_verified is not None:
            query["is_verified"] = is_verified
        if is_active is not None:
            query["is_active"] = is_active
        if skills:
            query["skills"] = {"$in": [s.strip() for s in skills.split(",") if s.strip()]}
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"name": pattern}, {"email": pattern}, {"skills": pattern}]

        cursor = self.collection.find(query).sort("created_at", DESCENDING).skip(skip_for(page, limit)).limit(limit)
        developers = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(query)
        return {
            "success": True,
            "data": serialize_documents(developers),
            "pagination": build_pagination(page, limit, total),
        }

    async def get_developer(self, developer_id: str) -> Dict[str, Any]:
        developer = await self.collection.find_one({"_id": to_object_id(developer_id, "Developer")})
        if not developer:
            raise NotFoundError("Developer not found")

        assignments = (
            await self.db.get_collection("project_assignments")
            .find({"developer_id": developer["_id"]})
            .sort("created_at", DESCENDING)
            .limit(10)
            .to_list(length=10)
        )
        reviews = (
            await self.db.get_collection("reviews")
            .find({"developer_id": developer["_id"]})
            .sort("created_at", DESCENDING)
            .limit(5)
            .to_list(length=5)
        )
        return {
            "developer": serialize_document(developer),
            "assignments": serialize_documents(assignments),
            "reviews": serialize_documents(reviews),
        }

    async def _update(self, developer_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        developer = await self.collection.find_one_and_update(
            {"_id": to_object_id(developer_id, "Developer")},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        if not developer:
            raise NotFoundError("Developer not found")
        return serialize_document(developer)

    async def verify_developer(
        self, developer_id: str, request: VerifyDeveloperRequest, admin_id: str
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        developer = await self._update(
            developer_id,
            {
                "is_verified": request.is_verified,
                "verification_notes": request.verification_notes,
                "verified_at": now if request.is_verified else None,
                "verified_by": to_object_id(admin_id) if request.is_verified else None,
                "updated_at": now,
            },
        )
        logger.info("Developer %s %s by admin %s", developer_id, "verified" if request.is_verified else "unverified", admin_id)
        return developer

    async def update_developer(self, developer_id: str, request: DeveloperUpdateRequest) -> Dict[str, Any]:
        fields = request.model_dump(exclude_unset=True)
        if "email" in fields:
            fields["email"] = fields["email"].lower()
        fields["updated_at"] = datetime.now(timezone.utc)
        return await self._update(developer_id, fields)

    async def delete_developer(self, developer_id: str) -> None:
        """Delete a developer unless one of their assignments is still open."""
        oid = to_object_id(developer_id, "Developer")
        if not await self.collection.find_one({"_id": oid}, {"_id": 1}):
            raise NotFoundError("Developer not found")

        active = await self.db.get_collection("project_assignments").count_documents(
            {"developer_id": oid, "status": {"$in": list(OPEN_WORK_STATUSES)}}
        )
        if active > 0:
            raise BusinessRuleError("Cannot delete developer with active assignments")

        await self.collection.delete_one({"_id": oid})
        logger.info("Deleted developer %s", developer_id)

    async def stats(self) -> Dict[str, Any]:
        rows = await self.collection.aggregate(developer_stats_pipeline()).to_list(length=None)
        return rows[0] if rows else {}

    async def promote_developer(self, developer_id: str, role: str) -> Dict[str, Any]:
        if role not in DEVELOPER_ROLES:
            raise BusinessRuleError("Invalid role")
        developer = await self._update(developer_id, {"role": role, "updated_at": datetime.now(timezone.utc)})
        logger.info("Developer %s promoted to %s", developer_id, role)
        return developer
