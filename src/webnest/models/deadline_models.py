from datetime import datetime, timedelta
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

ReminderType = Literal["7_days", "3_days", "1_day", "2_hours"]
DeadlinePriority = Literal["low", "medium", "high", "critical"]

# Offsets before the deadline at which reminders fire, longest first
REMINDER_OFFSETS: Dict[str, timedelta] = {
    "7_days": timedelta(days=7),
    "3_days": timedelta(days=3),
    "1_day": timedelta(days=1),
    "2_hours": timedelta(hours=2),
}

# Assignee type -> collection holding that account
ASSIGNEE_COLLECTIONS: Dict[str, str] = {"User": "users", "Developer": "developers"}


class ReminderEntry(BaseModel):
    """
    One reminder sub-document embedded in a deadline.

    `notification_sent` and `email_sent` track each delivery channel on its own. `sent` only
    becomes true once both channels have delivered.
    """
    reminder_type: ReminderType
    reminder_date: datetime
    notification_sent: bool = False
    email_sent: bool = False
    sent: bool = False
    sent_at: Optional[datetime] = None


class CreateDeadlineRequest(BaseModel):
    """
    Request model for creating a project deadline.
    """
    project_id: str = Field(..., alias="projectId")
    milestone_id: Optional[str] = Field(None, alias="milestoneId")
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    deadline_date: datetime = Field(..., alias="deadlineDate")
    priority: DeadlinePriority = "medium"
    assigned_to: str = Field(..., alias="assignedTo")
    assignee_type: Literal["User", "Developer"] = Field(..., alias="assigneeType")

    model_config = {"populate_by_name": True}
