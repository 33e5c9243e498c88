from datetime import datetime, timedelta, timezone

import pytest

from webnest.services.analytics_service import (
    AnalyticsService,
    activity_pipeline,
    breakdown_pipeline,
    developer_stats_pipeline,
    get_date_filter,
    monthly_growth_pipeline,
    revenue_pipeline,
    sum_pipeline,
    user_stats_pipeline,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

# ============================================================================
# Pipeline builders
# ============================================================================


@pytest.mark.parametrize(
    "timeframe, days",
    [("7d", 7), ("30d", 30), ("90d", 90), ("1y", 365), (None, 30), ("2w", 30)],
)
def test_date_filter_windows(timeframe, days):
    assert get_date_filter(timeframe, NOW) == NOW - timedelta(days=days)


def test_monthly_revenue_groups_by_year_and_month():
    pipeline = revenue_pipeline("monthly")

    assert pipeline[0] == {"$match": {"status": "completed", "paid_amount": {"$gt": 0}}}
    assert set(pipeline[1]["$group"]["_id"]) == {"year", "month"}
    assert pipeline[2] == {"$sort": {"_id.year": 1, "_id.month": 1}}


def test_daily_revenue_adds_day_key():
    pipeline = revenue_pipeline("daily")

    assert pipeline[1]["$group"]["_id"]["day"] == {"$dayOfMonth": "$created_at"}
    assert list(pipeline[2]["$sort"]) == ["_id.year", "_id.month", "_id.day"]


def test_growth_pipeline_counts_flagged_accounts():
    group = monthly_growth_pipeline("is_verified", "verified")[0]["$group"]

    assert group["verified"] == {"$sum": {"$cond": [{"$eq": ["$is_verified", True]}, 1, 0]}}


def test_facet_pipelines_expose_expected_sections():
    assert set(user_stats_pipeline()[0]["$facet"]) == {
        "role_breakdown",
        "premium_breakdown",
        "monthly_growth",
        "total_spending",
    }
    rating = developer_stats_pipeline()[0]["$facet"]["rating_distribution"][0]["$bucket"]
    assert rating["boundaries"] == [0, 1, 2, 3, 4, 5.01]
    assert rating["default"] == "No Rating"


def test_activity_pipeline_is_windowed_and_limited():
    since = NOW - timedelta(days=7)
    pipeline = activity_pipeline(since)

    assert pipeline[0] == {"$match": {"created_at": {"$gte": since}}}
    assert pipeline[-1] == {"$limit": 10}
    assert breakdown_pipeline("status")[1] == {"$sort": {"count": -1}}
    assert sum_pipeline({}, "budget", "$avg")[1]["$group"]["value"] == {"$avg": "$budget"}


# ============================================================================
# Service
# ============================================================================


@pytest.mark.asyncio
async def test_dashboard_overview_and_growth(fake_db):
    users = fake_db.get_collection("users")
    developers = fake_db.get_collection("developers")
    projects = fake_db.get_collection("projects")
    await users.insert_one({"name": "old", "created_at": NOW - timedelta(days=60)})
    await users.insert_one({"name": "new", "created_at": NOW - timedelta(days=3)})
    await developers.insert_one({"is_verified": True, "created_at": NOW - timedelta(days=2)})
    await developers.insert_one({"is_verified": False, "created_at": NOW - timedelta(days=40)})
    for status, paid, budget in (("completed", 1000, 1200), ("completed", 500, 800), ("in_progress", 0, 300)):
        await projects.insert_one(
            {"status": status, "paid_amount": paid, "budget": budget, "created_at": NOW - timedelta(days=10)}
        )

    result = await AnalyticsService(fake_db).dashboard("7d", now=NOW)

    assert result["overview"] == {
        "total_users": 2,
        "total_developers": 1,
        "total_projects": 3,
        "active_projects": 1,
        "completed_projects": 2,
        "total_revenue": 1500,
        "avg_project_value": 1000,
    }
    assert result["growth"] == {"users": 1, "developers": 1, "projects": 0}
    assert result["timeframe"] == "7d"


@pytest.mark.asyncio
async def test_dashboard_on_empty_database_reports_zeroes(fake_db):
    result = await AnalyticsService(fake_db).dashboard("bogus", now=NOW)

    assert result["overview"]["total_revenue"] == 0
    assert result["overview"]["avg_project_value"] == 0
    assert result["timeframe"] == "30d"


@pytest.mark.asyncio
async def test_performance_ranks_verified_developers(fake_db):
    developers = fake_db.get_collection("developers")
    await developers.insert_one({"name": "B", "is_verified": True, "rating": {"average": 4.2}, "completed_projects": 9})
    await developers.insert_one({"name": "A", "is_verified": True, "rating": {"average": 4.8}, "completed_projects": 3})
    await developers.insert_one({"name": "C", "is_verified": True, "rating": {"average": 4.2}, "completed_projects": 12})
    await developers.insert_one({"name": "X", "is_verified": False, "rating": {"average": 5.0}, "completed_projects": 1})
    activity = fake_db.get_collection("activity_logs")
    for action, days_ago in (("login", 1), ("login", 2), ("create_project", 3), ("login", 30)):
        await activity.insert_one({"action": action, "created_at": NOW - timedelta(days=days_ago)})

    result = await AnalyticsService(fake_db).performance(now=NOW)

    assert [d["name"] for d in result["top_developers"]] == ["A", "C", "B"]
    assert result["activity_stats"][0] == {"_id": "login", "count": 2}
    assert result["support_ticket_stats"] == []
