"""
Project deadlines and the reminder schedule embedded in each one.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, ReturnDocument

from webnest.errors import BusinessRuleError, NotFoundError, PermissionDeniedError
from webnest.managers.logging_manager import get_logger
from webnest.models.deadline_models import ASSIGNEE_COLLECTIONS, REMINDER_OFFSETS, CreateDeadlineRequest, ReminderEntry
from webnest.utils.mongo_utils import serialize_document, serialize_documents, to_object_id
from webnest.utils.pagination import build_pagination, skip_for

logger = get_logger(prefix="[DeadlineService]")


def compute_reminder_dates(deadline_date: datetime, now: datetime) -> List[ReminderEntry]:
    """
    Reminder entries for a deadline, fixed at creation time.

    An offset (7 days, 3 days, 1 day, 2 hours before the deadline) is only included if its
    trigger time is still in the future relative to `now`.
    """
    if deadline_date.tzinfo is None:
        deadline_date = deadline_date.replace(tzinfo=timezone.utc)
    reminders = []
    for reminder_type, offset in REMINDER_OFFSETS.items():
        reminder_date = deadline_date - offset
        if reminder_date > now:
            reminders.append(ReminderEntry(reminder_type=reminder_type, reminder_date=reminder_date))
    return reminders


class DeadlineService:
    """
    Service for creating and querying project deadlines.
    """

    def __init__(self, db):
        self.db = db
        self.collection_name = "project_deadlines"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def create_deadline(
        self,
        request: CreateDeadlineRequest,
        created_by: str,
        creator_type: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Create a deadline on a project and fix its reminder schedule.

        Clients and developers may only add deadlines to projects they are the client or the
        assigned developer of. Admins may add them to any project.

        Raises:
            BusinessRuleError: The deadline is not in the future.
            NotFoundError: Unknown project or assignee.
            PermissionDeniedError: The creator is not a party to the project.
        """
        now = now or datetime.now(timezone.utc)
        deadline_date = request.deadline_date
        if deadline_date.tzinfo is None:
            deadline_date = deadline_date.replace(tzinfo=timezone.utc)
        if deadline_date <= now:
            raise BusinessRuleError("Deadline date must be in the future")

        project_oid = to_object_id(request.project_id, "Project")
        project = await self.db.get_collection("projects").find_one({"_id": project_oid})
        if not project:
            raise NotFoundError("Project not found")
        if creator_type != "Admin":
            parties = {str(project[field]) for field in ("client_id", "assigned_developer") if project.get(field)}
            if created_by not in parties:
                raise PermissionDeniedError("Not authorized to add deadlines to this project")

        assignee_oid = to_object_id(request.assigned_to, request.assignee_type)
        assignee = await self.db.get_collection(ASSIGNEE_COLLECTIONS[request.assignee_type]).find_one(
            {"_id": assignee_oid}
        )
        if not assignee:
            raise NotFoundError(f"{request.assignee_type} not found")

        doc = {
            "project_id": project_oid,
            "milestone_id": request.milestone_id,
            "title": request.title,
            "description": request.description,
            "deadline_date": deadline_date,
            "reminder_dates": [r.model_dump() for r in compute_reminder_dates(deadline_date, now)],
            "is_completed": False,
            "completed_at": None,
            "priority": request.priority,
            "assigned_to": assignee_oid,
            "assignee_type": request.assignee_type,
            "created_by": created_by,
            "creator_type": creator_type,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(
            "Created deadline %s with %d reminders for %s %s",
            result.inserted_id,
            len(doc["reminder_dates"]),
            request.assignee_type,
            request.assigned_to,
        )
        return serialize_document(doc)

    async def list_deadlines(
        self,
        assignee_id: str,
        page: int,
        limit: int,
        include_completed: bool = False,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"assigned_to": to_object_id(assignee_id)}
        if not include_completed:
            query["is_completed"] = False
        cursor = (
            self.collection.find(query).sort("deadline_date", ASCENDING).skip(skip_for(page, limit)).limit(limit)
        )
        deadlines = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(query)
        return {
            "success": True,
            "data": serialize_documents(deadlines),
            "pagination": build_pagination(page, limit, total),
        }

    async def get_upcoming(self, assignee_id: str, now: Optional[datetime] = None, limit: int = 5) -> List[Dict]:
        now = now or datetime.now(timezone.utc)
        cursor = (
            self.collection.find(
                {"assigned_to": to_object_id(assignee_id), "is_completed": False, "deadline_date": {"$gte": now}}
            )
            .sort("deadline_date", ASCENDING)
            .limit(limit)
        )
        return serialize_documents(await cursor.to_list(length=limit))

    async def complete_deadline(self, deadline_id: str, assignee_id: str) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        deadline = await self.collection.find_one_and_update(
            {"_id": to_object_id(deadline_id, "Deadline"), "assigned_to": to_object_id(assignee_id)},
            {"$set": {"is_completed": True, "completed_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not deadline:
            raise NotFoundError("Deadline not found")
        return serialize_document(deadline)
