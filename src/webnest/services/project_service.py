"""
Admin project management: listing, assignment to developers and status changes.

Assigning or reassigning a project touches two collections (`projects` and
`project_assignments`). Both writes go through `db.run_in_transaction`. When the deployment
has no transaction support the callback runs without a session and the project write is
reverted by hand if the assignment write fails.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import DESCENDING, ReturnDocument

from webnest.errors import NotFoundError
from webnest.managers.logging_manager import get_logger
from webnest.models.project_models import AssignProjectRequest, ReassignProjectRequest, UpdateProjectStatusRequest
from webnest.services.analytics_service import project_stats_pipeline
from webnest.utils.mongo_utils import serialize_document, serialize_documents, to_object_id
from webnest.utils.pagination import build_pagination, skip_for

logger = get_logger(prefix="[ProjectService]")


class ProjectService:
    """
    Service for project records and their developer assignments.
    """

    def __init__(self, db):
        self.db = db
        self.collection_name = "projects"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    @property
    def assignments(self):
        return self.db.get_collection("project_assignments")

    async def list_projects(
        self, page: int, limit: int, status: Optional[str] = None, priority: Optional[str] = None
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if priority:
            query["priority"] = priority

        cursor = self.collection.find(query).sort("created_at", DESCENDING).skip(skip_for(page, limit)).limit(limit)
        projects = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(query)
        return {
            "success": True,
            "data": serialize_documents(projects),
            "pagination": build_pagination(page, limit, total),
        }

    async def get_project(self, project_id: str) -> Dict[str, Any]:
        project = await self.collection.find_one({"_id": to_object_id(project_id, "Project")})
        if not project:
            raise NotFoundError("Project not found")

        data = serialize_document(project)
        if project.get("client_id"):
            client = await self.db.get_collection("users").find_one(
                {"_id": project["client_id"]}, {"name": 1, "email": 1}
            )
            data["client"] = serialize_document(client)
        if project.get("assigned_developer"):
            developer = await self.db.get_collection("developers").find_one(
                {"_id": project["assigned_developer"]}, {"name": 1, "email": 1}
            )
            data["developer"] = serialize_document(developer)
        return data

    async def _require_developer(self, developer_id: str):
        oid = to_object_id(developer_id, "Developer")
        developer = await self.db.get_collection("developers").find_one({"_id": oid}, {"_id": 1})
        if not developer:
            raise NotFoundError("Developer not found")
        return oid

    async def assign_project(
        self, project_id: str, request: AssignProjectRequest, assigned_by: str
    ) -> Dict[str, Any]:
        """
        Point the project at a developer and record the assignment.

        Returns:
            Dict: `{"project": ..., "assignment": ...}`
        """
        project_oid = to_object_id(project_id, "Project")
        developer_oid = await self._require_developer(request.developer_id)
        now = datetime.now(timezone.utc)

        async def write(session):
            previous = await self.collection.find_one_and_update(
                {"_id": project_oid},
                {"$set": {"assigned_developer": developer_oid, "status": "assigned", "updated_at": now}},
                return_document=ReturnDocument.BEFORE,
                session=session,
            )
            if not previous:
                raise NotFoundError("Project not found")

            assignment = {
                "project_id": project_oid,
                "developer_id": developer_oid,
                "assigned_by": to_object_id(assigned_by),
                "estimated_hours": request.estimated_hours,
                "hourly_rate": request.hourly_rate,
                "total_amount": request.estimated_hours * request.hourly_rate,
                "notes": request.notes,
                "status": "assigned",
                "assigned_at": now,
                "created_at": now,
                "updated_at": now,
            }
            try:
                result = await self.assignments.insert_one(assignment, session=session)
            except Exception:
                if session is None:
                    await self._restore(previous, ("assigned_developer", "status", "updated_at"))
                raise
            assignment["_id"] = result.inserted_id

            project = dict(previous)
            project.update({"assigned_developer": developer_oid, "status": "assigned", "updated_at": now})
            return {"project": serialize_document(project), "assignment": serialize_document(assignment)}

        data = await self.db.run_in_transaction(write)
        logger.info("Project %s assigned to developer %s by %s", project_id, request.developer_id, assigned_by)
        return data

    async def reassign_project(
        self, project_id: str, request: ReassignProjectRequest, reassigned_by: str
    ) -> Dict[str, Any]:
        project_oid = to_object_id(project_id, "Project")
        developer_oid = await self._require_developer(request.new_developer_id)
        now = datetime.now(timezone.utc)

        async def write(session):
            previous = await self.collection.find_one_and_update(
                {"_id": project_oid},
                {"$set": {"assigned_developer": developer_oid, "updated_at": now}},
                return_document=ReturnDocument.BEFORE,
                session=session,
            )
            if not previous:
                raise NotFoundError("Project not found")

            try:
                await self.assignments.find_one_and_update(
                    {"project_id": project_oid},
                    {
                        "$set": {
                            "developer_id": developer_oid,
                            "reassigned_by": to_object_id(reassigned_by),
                            "reassignment_reason": request.reason,
                            "reassigned_at": now,
                            "updated_at": now,
                        }
                    },
                    sort=[("created_at", DESCENDING)],
                    session=session,
                )
            except Exception:
                if session is None:
                    await self._restore(previous, ("assigned_developer", "updated_at"))
                raise

            project = dict(previous)
            project.update({"assigned_developer": developer_oid, "updated_at": now})
            return serialize_document(project)

        data = await self.db.run_in_transaction(write)
        logger.info("Project %s reassigned to developer %s by %s", project_id, request.new_developer_id, reassigned_by)
        return data

    async def _restore(self, previous: Dict[str, Any], fields) -> None:
        """Compensating write used when the second half of a compound write fails."""
        restore = {field: previous.get(field) for field in fields}
        logger.warning("Rolling back project %s after failed assignment write", previous["_id"])
        await self.collection.update_one({"_id": previous["_id"]}, {"$set": restore})

    async def update_status(self, project_id: str, request: UpdateProjectStatusRequest) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        update: Dict[str, Any] = {"status": request.status, "updated_at": now}
        if request.status == "completed":
            update["timeline.actual_delivery"] = now
        project = await self.collection.find_one_and_update(
            {"_id": to_object_id(project_id, "Project")},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        if not project:
            raise NotFoundError("Project not found")
        logger.info("Project %s moved to %s", project_id, request.status)
        return serialize_document(project)

    async def stats(self) -> Dict[str, Any]:
        status_breakdown = await self.collection.aggregate(project_stats_pipeline()).to_list(length=None)
        total_projects = await self.collection.count_documents({})
        budgets = await self.collection.aggregate(
            [{"$group": {"_id": None, "average_budget": {"$avg": "$budget"}}}]
        ).to_list(length=None)
        return {
            "status_breakdown": status_breakdown,
            "total_projects": total_projects,
            "average_budget": (budgets[0].get("average_budget") or 0) if budgets else 0,
        }
