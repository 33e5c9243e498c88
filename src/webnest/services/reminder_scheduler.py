"""
# Deadline Reminder Scheduler

Periodic delivery of deadline reminders, plus the daily refresh-token sweep.

## Tick

Every hour (`DEADLINE_REMINDER_CRON`) the dispatcher loads incomplete deadlines that are
still in the future and have at least one unsent reminder. For each reminder whose trigger
time has passed it delivers an in-app notification and an email to the assignee.

## Delivery Guarantees

- Each channel has its own flag on the reminder sub-document (`notification_sent`,
  `email_sent`). A flag is written right after its channel succeeds, using an array filter on
  `reminder_type` so the update is atomic on the deadline document.
- `sent`/`sent_at` are written only once both channels have delivered.
- A channel that fails is logged and retried on the next tick. A channel that already
  succeeded is never repeated.
- Notifications also carry a `dedupe_key` of `<deadline_id>:<reminder_type>` and are upserted,
  so a crash between the notification write and its flag update cannot produce a duplicate.

## Overlap Protection

A tick first takes an in-process `asyncio.Lock`, then (when Redis is configured) a
`SET NX EX` lock shared by every instance. A tick that cannot take both locks is skipped.
APScheduler is additionally configured with `max_instances=1` and `coalesce=True`.
"""

import asyncio
import math
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from webnest.config import settings
from webnest.managers.logging_manager import get_logger
from webnest.managers.redis_manager import RedisManager
from webnest.models.deadline_models import ASSIGNEE_COLLECTIONS
from webnest.models.notification_models import ClientNotification
from webnest.services.email_service import EmailService
from webnest.services.email_templates import deadline_reminder_email
from webnest.services.notification_service import NotificationService
from webnest.services.token_service import TokenService

logger = get_logger(prefix="[DeadlineReminder]")

REMINDER_MESSAGES: Dict[str, str] = {
    "7_days": "Reminder: {title} deadline is in 7 days",
    "3_days": "Urgent: {title} deadline is in 3 days",
    "1_day": "Critical: {title} deadline is tomorrow",
    "2_hours": "Final Notice: {title} deadline is in 2 hours",
}

REMINDER_PRIORITIES: Dict[str, str] = {
    "7_days": "low",
    "3_days": "medium",
    "1_day": "high",
    "2_hours": "urgent",
}


def reminder_message(reminder_type: str, title: str) -> str:
    return REMINDER_MESSAGES.get(reminder_type, "Deadline reminder: {title}").format(title=title)


def reminder_priority(reminder_type: str) -> str:
    return REMINDER_PRIORITIES.get(reminder_type, "medium")


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ReminderDispatcher:
    """
    Runs one reminder tick against the database.
    """

    def __init__(self, db, notification_service: NotificationService, email_service: EmailService):
        self.db = db
        self.notification_service = notification_service
        self.email_service = email_service
        self.collection_name = "project_deadlines"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    async def run_tick(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Deliver every due, undelivered reminder.

        Returns:
            Dict[str, int]: Counts of `deadlines` scanned, reminders `delivered` and reminders
            left `pending` after a channel failure.
        """
        now = now or datetime.now(timezone.utc)
        stats = {"deadlines": 0, "delivered": 0, "pending": 0}

        cursor = self.collection.find(
            {"is_completed": False, "deadline_date": {"$gte": now}, "reminder_dates.sent": False}
        )
        async for deadline in cursor:
            stats["deadlines"] += 1
            for reminder in deadline.get("reminder_dates", []):
                if reminder.get("sent") or _as_utc(reminder["reminder_date"]) > now:
                    continue
                delivered = await self.dispatch(deadline, reminder, now)
                stats["delivered" if delivered else "pending"] += 1

        logger.info(
            "Reminder tick finished: %d deadlines scanned, %d reminders delivered, %d pending retry",
            stats["deadlines"],
            stats["delivered"],
            stats["pending"],
        )
        return stats

    async def dispatch(self, deadline: Dict[str, Any], reminder: Dict[str, Any], now: datetime) -> bool:
        """
        Deliver the outstanding channels of one reminder.

        Returns:
            bool: True once both channels have delivered and the reminder is marked sent.
        """
        reminder_type = reminder["reminder_type"]
        assignee_type = deadline.get("assignee_type", "User")
        assignee = await self.db.get_collection(ASSIGNEE_COLLECTIONS.get(assignee_type, "users")).find_one(
            {"_id": deadline["assigned_to"]}
        )
        if not assignee:
            logger.warning("Deadline %s has no %s assignee, skipping reminder", deadline["_id"], assignee_type)
            return False

        project = await self.db.get_collection("projects").find_one({"_id": deadline["project_id"]})
        project_title = project.get("title", deadline["title"]) if project else deadline["title"]
        deadline_date = _as_utc(deadline["deadline_date"])
        days_until = math.ceil((deadline_date - now) / timedelta(days=1))

        notification_sent = reminder.get("notification_sent", False)
        email_sent = reminder.get("email_sent", False)

        if not notification_sent:
            try:
                await self.notification_service.create(
                    ClientNotification(
                        user_id=str(assignee["_id"]),
                        user_type=assignee_type,
                        type="deadline_reminder",
                        title="Deadline Reminder",
                        message=reminder_message(reminder_type, deadline["title"]),
                        priority=reminder_priority(reminder_type),
                        action_url=f"/projects/{deadline['project_id']}",
                        action_text="View Project",
                        metadata={
                            "deadline_id": str(deadline["_id"]),
                            "project_id": str(deadline["project_id"]),
                            "deadline": deadline_date.isoformat(),
                            "days_until": days_until,
                        },
                        dedupe_key=f"{deadline['_id']}:{reminder_type}",
                        created_at=now,
                    )
                )
                await self._mark(deadline["_id"], reminder_type, {"notification_sent": True})
                notification_sent = True
            except Exception as e:
                logger.error(
                    "Notification for deadline %s (%s) failed: %s", deadline["_id"], reminder_type, e, exc_info=True
                )

        if not email_sent:
            try:
                await self.email_service.send(
                    assignee["email"],
                    f"Deadline Reminder: {deadline['title']}",
                    deadline_reminder_email(
                        title=deadline["title"],
                        project_title=project_title,
                        project_id=str(deadline["project_id"]),
                        deadline_date=deadline_date,
                        days_until=days_until,
                        description=deadline.get("description"),
                    ),
                )
                await self._mark(deadline["_id"], reminder_type, {"email_sent": True})
                email_sent = True
            except Exception as e:
                logger.error("Email for deadline %s (%s) failed: %s", deadline["_id"], reminder_type, e, exc_info=True)

        if notification_sent and email_sent:
            await self._mark(deadline["_id"], reminder_type, {"sent": True, "sent_at": now})
            logger.info("Delivered %s reminder for deadline %s", reminder_type, deadline["_id"])
            return True
        return False

    async def _mark(self, deadline_id, reminder_type: str, fields: Dict[str, Any]) -> None:
        await self.collection.update_one(
            {"_id": deadline_id},
            {"$set": {f"reminder_dates.$[r].{key}": value for key, value in fields.items()}},
            array_filters=[{"r.reminder_type": reminder_type}],
        )


class ReminderScheduler:
    """
    APScheduler wrapper that runs the reminder tick and the refresh-token cleanup.
    """

    def __init__(self, dispatcher: ReminderDispatcher, token_service: TokenService, redis_manager: RedisManager):
        self.dispatcher = dispatcher
        self.token_service = token_service
        self.redis_manager = redis_manager
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._tick_lock = asyncio.Lock()

    def start(self):
        """Register both jobs and start the scheduler. Must be called from a running event loop."""
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            self.run_reminder_tick,
            trigger=CronTrigger.from_crontab(settings.DEADLINE_REMINDER_CRON, timezone="UTC"),
            id="deadline_reminders",
            name="Deadline reminders",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_token_cleanup,
            trigger=CronTrigger.from_crontab(settings.TOKEN_CLEANUP_CRON, timezone="UTC"),
            id="refresh_token_cleanup",
            name="Refresh token cleanup",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            "Reminder scheduler started (reminders: '%s', token cleanup: '%s')",
            settings.DEADLINE_REMINDER_CRON,
            settings.TOKEN_CLEANUP_CRON,
        )

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Reminder scheduler stopped")

    async def run_reminder_tick(self, now: Optional[datetime] = None) -> Optional[Dict[str, int]]:
        """
        Run one tick under both locks. Never raises.

        Returns:
            The dispatcher stats, or `None` when the tick was skipped or failed.
        """
        if self._tick_lock.locked():
            logger.warning("Previous reminder tick still running in this process, skipping")
            return None

        async with self._tick_lock:
            lock_token = secrets.token_hex(16)
            try:
                acquired = await self.redis_manager.acquire_lock(
                    settings.REMINDER_LOCK_KEY, lock_token, settings.REMINDER_LOCK_TTL_SECONDS
                )
            except Exception as e:
                logger.error("Could not acquire reminder lock, skipping tick: %s", e)
                return None
            if not acquired:
                logger.info("Reminder tick already running on another instance, skipping")
                return None

            try:
                return await self.dispatcher.run_tick(now)
            except Exception as e:
                logger.error("Deadline reminder tick failed: %s", e, exc_info=True)
                return None
            finally:
                try:
                    await self.redis_manager.release_lock(settings.REMINDER_LOCK_KEY, lock_token)
                except Exception as e:
                    logger.warning("Failed to release reminder lock, it will expire on its own: %s", e)

    async def run_token_cleanup(self) -> Optional[int]:
        try:
            return await self.token_service.cleanup_expired_tokens()
        except Exception as e:
            logger.error("Refresh token cleanup failed: %s", e, exc_info=True)
            return None
