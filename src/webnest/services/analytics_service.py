"""
# Analytics Aggregation

Read-only reporting over the shared database for the admin dashboard.

Every report is an aggregation pipeline evaluated server-side on each request. Pipelines
are built by the module-level `*_pipeline` functions, which are pure and take the time
window as an argument, and executed by `AnalyticsService`. Nothing is cached and there is
no pagination beyond fixed `$limit` stages.

## Time Windows

`get_date_filter(timeframe)` maps `7d`, `30d`, `90d` and `1y` to a window start. Unknown
values fall back to `30d`. Revenue can be grouped `daily` (year, month, day) or `monthly`
(year, month).
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from webnest.managers.logging_manager import get_logger
from webnest.utils.mongo_utils import serialize_documents

logger = get_logger(prefix="[Analytics]")

TIMEFRAMES: Dict[str, timedelta] = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}
DEFAULT_TIMEFRAME = "30d"
MS_PER_DAY = 1000 * 60 * 60 * 24

ACTIVE_PROJECT_STATUSES = ["assigned", "in_progress"]


def get_date_filter(timeframe: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Start of the reporting window for `timeframe`."""
    now = now or datetime.now(timezone.utc)
    return now - TIMEFRAMES.get(timeframe or DEFAULT_TIMEFRAME, TIMEFRAMES[DEFAULT_TIMEFRAME])


def sum_pipeline(match: Dict[str, Any], field: str, op: str = "$sum") -> List[Dict[str, Any]]:
    return [{"$match": match}, {"$group": {"_id": None, "value": {op: f"${field}"}}}]


def revenue_pipeline(period: str = "monthly") -> List[Dict[str, Any]]:
    group_by: Dict[str, Any] = {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}}
    sort: Dict[str, int] = {"_id.year": 1, "_id.month": 1}
    if period == "daily":
        group_by["day"] = {"$dayOfMonth": "$created_at"}
        sort["_id.day"] = 1
    return [
        {"$match": {"status": "completed", "paid_amount": {"$gt": 0}}},
        {
            "$group": {
                "_id": group_by,
                "revenue": {"$sum": "$paid_amount"},
                "projects": {"$sum": 1},
                "avg_value": {"$avg": "$paid_amount"},
            }
        },
        {"$sort": sort},
    ]


def monthly_growth_pipeline(flag_field: str, flag_name: str) -> List[Dict[str, Any]]:
    """Accounts created per month, with how many of them have `flag_field` set."""
    return [
        {
            "$group": {
                "_id": {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}},
                "count": {"$sum": 1},
                flag_name: {"$sum": {"$cond": [{"$eq": [f"${flag_field}", True]}, 1, 0]}},
            }
        },
        {"$sort": {"_id.year": 1, "_id.month": 1}},
    ]


def breakdown_pipeline(field: str) -> List[Dict[str, Any]]:
    return [{"$group": {"_id": f"${field}", "count": {"$sum": 1}}}, {"$sort": {"count": -1}}]


def completion_time_pipeline() -> List[Dict[str, Any]]:
    return [
        {"$match": {"status": "completed", "timeline.actual_delivery": {"$exists": True}}},
        {
            "$project": {
                "completion_days": {
                    "$divide": [{"$subtract": ["$timeline.actual_delivery", "$created_at"]}, MS_PER_DAY]
                }
            }
        },
        {"$group": {"_id": None, "value": {"$avg": "$completion_days"}}},
    ]


def support_ticket_pipeline() -> List[Dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$status",
                "count": {"$sum": 1},
                "avg_resolution_time": {
                    "$avg": {
                        "$cond": [
                            {"$eq": ["$status", "resolved"]},
                            {"$subtract": ["$resolution.resolved_at", "$created_at"]},
                            None,
                        ]
                    }
                },
            }
        }
    ]


def activity_pipeline(since: datetime, limit: int = 10) -> List[Dict[str, Any]]:
    return [
        {"$match": {"created_at": {"$gte": since}}},
        {"$group": {"_id": "$action", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
        {"$limit": limit},
    ]


def user_stats_pipeline() -> List[Dict[str, Any]]:
    return [
        {
            "$facet": {
                "role_breakdown": [{"$group": {"_id": "$role", "count": {"$sum": 1}}}],
                "premium_breakdown": [{"$group": {"_id": "$is_premium", "count": {"$sum": 1}}}],
                "monthly_growth": [
                    {
                        "$group": {
                            "_id": {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}},
                            "count": {"$sum": 1},
                        }
                    },
                    {"$sort": {"_id.year": 1, "_id.month": 1}},
                ],
                "total_spending": [{"$group": {"_id": None, "total": {"$sum": "$total_spent"}}}],
            }
        }
    ]


def developer_stats_pipeline() -> List[Dict[str, Any]]:
    return [
        {
            "$facet": {
                "verification_breakdown": [{"$group": {"_id": "$is_verified", "count": {"$sum": 1}}}],
                "skills_breakdown": [
                    {"$unwind": "$skills"},
                    {"$group": {"_id": "$skills", "count": {"$sum": 1}}},
                    {"$sort": {"count": -1}},
                    {"$limit": 10},
                ],
                "rating_distribution": [
                    {
                        "$bucket": {
                            "groupBy": "$rating.average",
                            "boundaries": [0, 1, 2, 3, 4, 5.01],
                            "default": "No Rating",
                            "output": {"count": {"$sum": 1}},
                        }
                    }
                ],
                "total_earnings": [{"$group": {"_id": None, "total": {"$sum": "$total_earnings"}}}],
            }
        }
    ]


def project_stats_pipeline() -> List[Dict[str, Any]]:
    return [{"$group": {"_id": "$status", "count": {"$sum": 1}, "total_budget": {"$sum": "$budget"}}}]


class AnalyticsService:
    """
    Executes the analytics pipelines and shapes their results.
    """

    def __init__(self, db):
        self.db = db

    async def _aggregate(self, collection_name: str, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return await self.db.get_collection(collection_name).aggregate(pipeline).to_list(length=None)

    async def _scalar(self, collection_name: str, pipeline: List[Dict[str, Any]]) -> float:
        rows = await self._aggregate(collection_name, pipeline)
        return rows[0]["value"] if rows and rows[0].get("value") is not None else 0

    async def _count(self, collection_name: str, query: Dict[str, Any]) -> int:
        return await self.db.get_collection(collection_name).count_documents(query)

    async def dashboard(self, timeframe: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        since = get_date_filter(timeframe, now)
        logger.debug("Building dashboard analytics since %s", since.isoformat())
        (
            total_users,
            total_developers,
            total_projects,
            active_projects,
            completed_projects,
            total_revenue,
            avg_project_value,
            user_growth,
            developer_growth,
            project_growth,
        ) = await asyncio.gather(
            self._count("users", {}),
            self._count("developers", {"is_verified": True}),
            self._count("projects", {}),
            self._count("projects", {"status": {"$in": ACTIVE_PROJECT_STATUSES}}),
            self._count("projects", {"status": "completed"}),
            self._scalar("projects", sum_pipeline({"status": "completed"}, "paid_amount")),
            self._scalar("projects", sum_pipeline({"status": "completed"}, "budget", "$avg")),
            self._count("users", {"created_at": {"$gte": since}}),
            self._count("developers", {"created_at": {"$gte": since}}),
            self._count("projects", {"created_at": {"$gte": since}}),
        )
        return {
            "overview": {
                "total_users": total_users,
                "total_developers": total_developers,
                "total_projects": total_projects,
                "active_projects": active_projects,
                "completed_projects": completed_projects,
                "total_revenue": total_revenue,
                "avg_project_value": avg_project_value,
            },
            "growth": {"users": user_growth, "developers": developer_growth, "projects": project_growth},
            "timeframe": timeframe if timeframe in TIMEFRAMES else DEFAULT_TIMEFRAME,
        }

    async def revenue(self, period: str = "monthly") -> List[Dict[str, Any]]:
        return await self._aggregate("projects", revenue_pipeline(period))

    async def user_growth(self) -> Dict[str, Any]:
        users, developers = await asyncio.gather(
            self._aggregate("users", monthly_growth_pipeline("is_premium", "premium")),
            self._aggregate("developers", monthly_growth_pipeline("is_verified", "verified")),
        )
        return {"users": users, "developers": developers}

    async def projects(self) -> Dict[str, Any]:
        status_breakdown, type_breakdown, avg_completion, satisfaction = await asyncio.gather(
            self._aggregate("projects", breakdown_pipeline("status")),
            self._aggregate("projects", breakdown_pipeline("project_type")),
            self._scalar("projects", completion_time_pipeline()),
            self._scalar("reviews", [{"$group": {"_id": None, "value": {"$avg": "$rating"}}}]),
        )
        return {
            "status_breakdown": status_breakdown,
            "type_breakdown": type_breakdown,
            "avg_completion_time": avg_completion,
            "satisfaction_rating": satisfaction,
        }

    async def performance(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        top_developers_cursor = (
            self.db.get_collection("developers")
            .find(
                {"is_verified": True},
                {"name": 1, "rating": 1, "total_projects": 1, "completed_projects": 1, "total_earnings": 1},
            )
            .sort([("rating.average", DESCENDING), ("completed_projects", DESCENDING)])
            .limit(10)
        )
        top_developers, support_stats, activity_stats = await asyncio.gather(
            top_developers_cursor.to_list(length=10),
            self._aggregate("support_tickets", support_ticket_pipeline()),
            self._aggregate("activity_logs", activity_pipeline(now - timedelta(days=7))),
        )
        return {
            "top_developers": serialize_documents(top_developers),
            "support_ticket_stats": support_stats,
            "activity_stats": activity_stats,
        }
