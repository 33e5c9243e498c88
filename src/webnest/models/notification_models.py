from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

NotificationType = Literal[
    "project_update",
    "payment_reminder",
    "deadline_reminder",
    "message",
    "system",
    "promotion",
    "support_reply",
]
NotificationPriority = Literal["low", "medium", "high", "urgent"]


class ClientNotification(BaseModel):
    """
    In-app notification shown to a client or developer.
    """
    user_id: str = Field(..., description="Recipient id")
    user_type: Literal["User", "Developer"] = "User"
    type: NotificationType = "system"
    title: str = Field(..., max_length=200)
    message: str = Field(..., max_length=1000)
    priority: NotificationPriority = "medium"
    is_read: bool = False
    read_at: Optional[datetime] = None
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    dedupe_key: Optional[str] = Field(None, description="Idempotency key for system-generated notifications")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
