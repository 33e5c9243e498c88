from typing import Literal, Optional

from pydantic import BaseModel, Field

ProjectStatus = Literal["pending", "assigned", "accepted", "in_progress", "review", "completed", "cancelled"]
ProjectPriority = Literal["low", "medium", "high", "urgent"]
AssignmentStatus = Literal["active", "assigned", "accepted", "in_progress", "completed", "reassigned"]

# Statuses in which a project or assignment still ties up its client or developer
OPEN_WORK_STATUSES = ("assigned", "accepted", "in_progress")


class AssignProjectRequest(BaseModel):
    """
    Assign a developer to a project.
    """
    developer_id: str = Field(..., alias="developerId")
    estimated_hours: float = Field(0, ge=0, alias="estimatedHours")
    hourly_rate: float = Field(0, ge=0, alias="hourlyRate")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class ReassignProjectRequest(BaseModel):
    new_developer_id: str = Field(..., alias="newDeveloperId")
    reason: Optional[str] = None

    model_config = {"populate_by_name": True}


class UpdateProjectStatusRequest(BaseModel):
    status: ProjectStatus
    notes: Optional[str] = None
