from datetime import datetime, timedelta, timezone

import pytest

from webnest.services.developer_service import DeveloperService
from webnest.services.project_service import ProjectService
from webnest.services.user_service import UserService
from webnest.utils.pagination import build_pagination, skip_for

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_pages_round_up():
    assert build_pagination(3, 20, 57) == {"page": 3, "pages": 3, "total": 57}
    assert build_pagination(1, 20, 60)["pages"] == 3
    assert build_pagination(1, 20, 0)["pages"] == 0


def test_skip_is_one_based():
    assert skip_for(1, 20) == 0
    assert skip_for(3, 20) == 40
    assert skip_for(0, 20) == 0


async def _seed(db, collection, count, **fields):
    for i in range(count):
        doc = {"name": f"record-{i:02d}", "created_at": START + timedelta(hours=i)}
        doc.update(fields)
        await db.get_collection(collection).insert_one(doc)


@pytest.mark.asyncio
async def test_user_list_last_page(fake_db, email_service):
    await _seed(fake_db, "users", 57, role="client", is_premium=False)

    result = await UserService(fake_db, email_service).list_users(page=3, limit=20)

    assert result["success"] is True
    assert result["pagination"] == {"page": 3, "pages": 3, "total": 57}
    assert len(result["data"]) == 17
    # newest first, so the last page ends with the oldest record
    assert result["data"][-1]["name"] == "record-00"


@pytest.mark.asyncio
async def test_user_list_filters_and_search(fake_db, email_service):
    await _seed(fake_db, "users", 3, role="client", is_premium=False)
    await fake_db.get_collection("users").insert_one(
        {"name": "Grace", "email": "grace@acme.io", "company": "Acme (EU)", "role": "premiumClient",
         "is_premium": True, "created_at": START}
    )
    service = UserService(fake_db, email_service)

    premium = await service.list_users(page=1, limit=20, is_premium=True)
    searched = await service.list_users(page=1, limit=20, search="acme (eu")

    assert [u["name"] for u in premium["data"]] == ["Grace"]
    assert [u["name"] for u in searched["data"]] == ["Grace"]


@pytest.mark.asyncio
async def test_developer_list_pagination_and_skills(fake_db):
    await _seed(fake_db, "developers", 57, skills=["python"], is_verified=True, is_active=True)
    await _seed(fake_db, "developers", 2, skills=["rust"], is_verified=False, is_active=True)
    service = DeveloperService(fake_db)

    page = await service.list_developers(page=3, limit=20, skills="python")
    rust = await service.list_developers(page=1, limit=20, skills="go, rust")

    assert page["pagination"] == {"page": 3, "pages": 3, "total": 57}
    assert len(page["data"]) == 17
    assert rust["pagination"]["total"] == 2


@pytest.mark.asyncio
async def test_project_list_pagination_and_status_filter(fake_db):
    await _seed(fake_db, "projects", 57, status="pending", priority="medium")
    await _seed(fake_db, "projects", 4, status="completed", priority="high")
    service = ProjectService(fake_db)

    pending = await service.list_projects(page=3, limit=20, status="pending")
    high = await service.list_projects(page=1, limit=20, priority="high")

    assert pending["pagination"] == {"page": 3, "pages": 3, "total": 57}
    assert len(pending["data"]) == 17
    assert high["pagination"] == {"page": 1, "pages": 1, "total": 4}
