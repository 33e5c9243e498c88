import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from webnest.errors import EmailDeliveryError, NotFoundError, PermissionDeniedError
from webnest.models.deadline_models import CreateDeadlineRequest
from webnest.models.notification_models import ClientNotification
from webnest.services.deadline_service import DeadlineService, compute_reminder_dates
from webnest.services.notification_service import NotificationService
from webnest.services.reminder_scheduler import ReminderDispatcher, ReminderScheduler

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Reminder schedule
# ============================================================================


def test_all_offsets_kept_when_deadline_is_far_away():
    deadline = NOW + timedelta(days=30)

    reminders = compute_reminder_dates(deadline, NOW)

    assert [r.reminder_type for r in reminders] == ["7_days", "3_days", "1_day", "2_hours"]
    assert reminders[0].reminder_date == deadline - timedelta(days=7)
    assert reminders[-1].reminder_date == deadline - timedelta(hours=2)
    assert all(not r.sent and not r.notification_sent and not r.email_sent for r in reminders)


def test_offsets_already_in_the_past_are_dropped():
    reminders = compute_reminder_dates(NOW + timedelta(days=2), NOW)

    assert [r.reminder_type for r in reminders] == ["1_day", "2_hours"]


def test_no_reminders_inside_the_last_two_hours():
    assert compute_reminder_dates(NOW + timedelta(hours=1), NOW) == []


# ============================================================================
# Deadline creation
# ============================================================================


async def _project_with_parties(db):
    client = {"name": "Client", "email": "client@webnest.io"}
    developer = {"name": "Dev", "email": "dev@webnest.io"}
    await db.get_collection("users").insert_one(client)
    await db.get_collection("developers").insert_one(developer)
    project = {"title": "Shop", "client_id": client["_id"], "assigned_developer": developer["_id"]}
    await db.get_collection("projects").insert_one(project)
    return project, client, developer


def _request(project_id, assignee_id, assignee_type="Developer"):
    return CreateDeadlineRequest(
        project_id=str(project_id),
        title="Checkout flow",
        deadline_date=NOW + timedelta(days=10),
        assigned_to=str(assignee_id),
        assignee_type=assignee_type,
    )


@pytest.mark.asyncio
async def test_project_client_can_schedule_for_assigned_developer(fake_db):
    project, client, developer = await _project_with_parties(fake_db)

    deadline = await DeadlineService(fake_db).create_deadline(
        _request(project["_id"], developer["_id"]), str(client["_id"]), "User", now=NOW
    )

    assert deadline["assigned_to"] == str(developer["_id"])
    assert len(deadline["reminder_dates"]) == 4


@pytest.mark.asyncio
async def test_unknown_project_is_rejected(fake_db):
    _, client, developer = await _project_with_parties(fake_db)

    with pytest.raises(NotFoundError, match="Project not found"):
        await DeadlineService(fake_db).create_deadline(
            _request("64b000000000000000000001", developer["_id"]), str(client["_id"]), "User", now=NOW
        )
    assert fake_db.get_collection("project_deadlines").docs == []


@pytest.mark.asyncio
async def test_outsider_cannot_add_deadlines_to_a_project(fake_db):
    project, _, developer = await _project_with_parties(fake_db)
    outsider = {"name": "Other", "email": "other@webnest.io"}
    await fake_db.get_collection("users").insert_one(outsider)

    with pytest.raises(PermissionDeniedError):
        await DeadlineService(fake_db).create_deadline(
            _request(project["_id"], developer["_id"]), str(outsider["_id"]), "User", now=NOW
        )
    assert fake_db.get_collection("project_deadlines").docs == []


@pytest.mark.asyncio
async def test_unknown_assignee_is_rejected(fake_db):
    project, client, _ = await _project_with_parties(fake_db)

    with pytest.raises(NotFoundError, match="Developer not found"):
        await DeadlineService(fake_db).create_deadline(
            _request(project["_id"], "64b000000000000000000002"), str(client["_id"]), "User", now=NOW
        )
    assert fake_db.get_collection("project_deadlines").docs == []


# ============================================================================
# Notification storage
# ============================================================================


@pytest.mark.asyncio
async def test_keyless_notifications_omit_dedupe_key(fake_db):
    service = NotificationService(fake_db)

    for title in ("Welcome", "Tips"):
        await service.create(ClientNotification(user_id="u1", title=title, message="Hello"))

    docs = fake_db.get_collection("client_notifications").docs
    assert len(docs) == 2
    assert all("dedupe_key" not in doc for doc in docs)


# ============================================================================
# Dispatcher
# ============================================================================


@pytest_asyncio.fixture
async def seeded(fake_db):
    developer = {"name": "Dev", "email": "dev@webnest.io", "is_active": True}
    project = {"title": "Landing page"}
    await fake_db.get_collection("developers").insert_one(developer)
    await fake_db.get_collection("projects").insert_one(project)

    created_at = NOW - timedelta(days=2)
    deadline = await DeadlineService(fake_db).create_deadline(
        CreateDeadlineRequest(
            project_id=str(project["_id"]),
            title="Launch",
            deadline_date=NOW + timedelta(hours=20),
            assigned_to=str(developer["_id"]),
            assignee_type="Developer",
        ),
        created_by="admin-1",
        creator_type="Admin",
        now=created_at,
    )
    return deadline


def _dispatcher(db, email_service):
    return ReminderDispatcher(db, NotificationService(db), email_service)


async def _reminders(db):
    deadline = await db.get_collection("project_deadlines").find_one({})
    return {r["reminder_type"]: r for r in deadline["reminder_dates"]}


@pytest.mark.asyncio
async def test_deadline_created_with_only_future_reminders(fake_db, seeded):
    assert [r["reminder_type"] for r in seeded["reminder_dates"]] == ["1_day", "2_hours"]


@pytest.mark.asyncio
async def test_tick_delivers_due_reminder_once(fake_db, email_service, seeded):
    dispatcher = _dispatcher(fake_db, email_service)

    first = await dispatcher.run_tick(now=NOW)
    second = await dispatcher.run_tick(now=NOW + timedelta(minutes=5))

    assert first["delivered"] == 1
    assert second["delivered"] == 0
    assert email_service.send.await_count == 1
    assert await fake_db.get_collection("client_notifications").count_documents({}) == 1

    reminders = await _reminders(fake_db)
    assert reminders["1_day"]["sent"] is True
    assert reminders["1_day"]["sent_at"] == NOW
    assert reminders["2_hours"]["sent"] is False


@pytest.mark.asyncio
async def test_notification_content(fake_db, email_service, seeded):
    await _dispatcher(fake_db, email_service).run_tick(now=NOW)

    notification = await fake_db.get_collection("client_notifications").find_one({})
    assert notification["type"] == "deadline_reminder"
    assert notification["priority"] == "high"
    assert notification["message"] == "Critical: Launch deadline is tomorrow"
    assert notification["user_type"] == "Developer"
    assert notification["dedupe_key"] == f"{seeded['id']}:1_day"
    assert email_service.send.await_args.args[0] == "dev@webnest.io"


@pytest.mark.asyncio
async def test_failed_email_is_retried_without_repeating_notification(fake_db, email_service, seeded):
    email_service.send.side_effect = [EmailDeliveryError("smtp down"), None]
    dispatcher = _dispatcher(fake_db, email_service)

    first = await dispatcher.run_tick(now=NOW)
    reminder = (await _reminders(fake_db))["1_day"]
    assert first == {"deadlines": 1, "delivered": 0, "pending": 1}
    assert reminder["notification_sent"] is True
    assert reminder["email_sent"] is False
    assert reminder["sent"] is False

    second = await dispatcher.run_tick(now=NOW + timedelta(hours=1))
    reminder = (await _reminders(fake_db))["1_day"]
    assert second["delivered"] == 1
    assert reminder["email_sent"] is True
    assert reminder["sent"] is True
    assert email_service.send.await_count == 2
    assert await fake_db.get_collection("client_notifications").count_documents({}) == 1


@pytest.mark.asyncio
async def test_lost_flag_write_does_not_duplicate_notification(fake_db, email_service, seeded):
    dispatcher = _dispatcher(fake_db, email_service)
    original_mark = dispatcher._mark
    dispatcher._mark = AsyncMock(side_effect=RuntimeError("connection reset"))

    await dispatcher.run_tick(now=NOW)
    assert await fake_db.get_collection("client_notifications").count_documents({}) == 1

    dispatcher._mark = original_mark
    await dispatcher.run_tick(now=NOW + timedelta(hours=1))

    assert await fake_db.get_collection("client_notifications").count_documents({}) == 1
    assert (await _reminders(fake_db))["1_day"]["sent"] is True


@pytest.mark.asyncio
async def test_completed_deadlines_are_ignored(fake_db, email_service, seeded):
    await fake_db.get_collection("project_deadlines").update_one({}, {"$set": {"is_completed": True}})

    stats = await _dispatcher(fake_db, email_service).run_tick(now=NOW)

    assert stats["deadlines"] == 0
    email_service.send.assert_not_awaited()


# ============================================================================
# Scheduler locking
# ============================================================================


def _scheduler(dispatcher, acquired=True):
    redis_manager = MagicMock()
    redis_manager.acquire_lock = AsyncMock(return_value=acquired)
    redis_manager.release_lock = AsyncMock()
    return ReminderScheduler(dispatcher, MagicMock(), redis_manager), redis_manager


@pytest.mark.asyncio
async def test_tick_runs_under_lock_and_releases_it():
    dispatcher = MagicMock()
    dispatcher.run_tick = AsyncMock(return_value={"deadlines": 0, "delivered": 0, "pending": 0})
    scheduler, redis_manager = _scheduler(dispatcher)

    result = await scheduler.run_reminder_tick(now=NOW)

    assert result == {"deadlines": 0, "delivered": 0, "pending": 0}
    redis_manager.acquire_lock.assert_awaited_once()
    redis_manager.release_lock.assert_awaited_once()


@pytest.mark.asyncio
async def test_tick_skipped_when_another_instance_holds_lock():
    dispatcher = MagicMock()
    dispatcher.run_tick = AsyncMock()
    scheduler, redis_manager = _scheduler(dispatcher, acquired=False)

    assert await scheduler.run_reminder_tick(now=NOW) is None
    dispatcher.run_tick.assert_not_awaited()
    redis_manager.release_lock.assert_not_awaited()


@pytest.mark.asyncio
async def test_overlapping_tick_in_same_process_is_skipped():
    started = asyncio.Event()
    finish = asyncio.Event()

    async def slow_tick(now=None):
        started.set()
        await finish.wait()
        return {"deadlines": 0, "delivered": 0, "pending": 0}

    dispatcher = MagicMock()
    dispatcher.run_tick = slow_tick
    scheduler, _ = _scheduler(dispatcher)

    first = asyncio.create_task(scheduler.run_reminder_tick(now=NOW))
    await started.wait()
    assert await scheduler.run_reminder_tick(now=NOW) is None
    finish.set()
    assert (await first)["deadlines"] == 0


@pytest.mark.asyncio
async def test_tick_failure_is_contained():
    dispatcher = MagicMock()
    dispatcher.run_tick = AsyncMock(side_effect=RuntimeError("mongo unavailable"))
    scheduler, redis_manager = _scheduler(dispatcher)

    assert await scheduler.run_reminder_tick(now=NOW) is None
    redis_manager.release_lock.assert_awaited_once()
