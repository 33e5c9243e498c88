"""
Developer earnings ledger and payout requests.

The ledger is whatever documents exist in `earnings`; summaries are aggregated on read.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING

from webnest.errors import BusinessRuleError
from webnest.managers.logging_manager import get_logger
from webnest.models.earnings_models import PayoutRequest
from webnest.utils.mongo_utils import serialize_document, serialize_documents, to_object_id
from webnest.utils.pagination import build_pagination, skip_for

logger = get_logger(prefix="[EarningsService]")

EMPTY_STATS = {"total_earned": 0, "total_hours": 0, "project_count": 0, "average_hourly_rate": 0}

PERIOD_GROUPING = {
    "week": {"$dayOfWeek": "$earned_at"},
    "month": {"$dayOfMonth": "$earned_at"},
    "year": {"$month": "$earned_at"},
}


def period_start(period: str, now: datetime) -> Optional[datetime]:
    """First instant of the current week (Sunday), month or year. `None` for `all`."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return midnight - timedelta(days=(now.weekday() + 1) % 7)
    if period == "month":
        return midnight.replace(day=1)
    if period == "year":
        return midnight.replace(month=1, day=1)
    return None


def earnings_match(developer_id: ObjectId, period: str, now: datetime) -> Dict[str, Any]:
    match: Dict[str, Any] = {"developer_id": developer_id}
    start = period_start(period, now)
    if start is not None:
        match["earned_at"] = {"$gte": start}
    return match


def earnings_by_time_pipeline(match: Dict[str, Any], period: str) -> List[Dict[str, Any]]:
    return [
        {"$match": match},
        {
            "$group": {
                "_id": PERIOD_GROUPING.get(period),
                "amount": {"$sum": "$amount"},
                "hours": {"$sum": "$hours_worked"},
            }
        },
        {"$sort": {"_id": 1}},
    ]


def earnings_by_project_pipeline(match: Dict[str, Any], limit: int = 5) -> List[Dict[str, Any]]:
    return [
        {"$match": match},
        {"$group": {"_id": "$project_id", "amount": {"$sum": "$amount"}, "hours": {"$sum": "$hours_worked"}}},
        {"$sort": {"amount": -1}},
        {"$limit": limit},
        {"$lookup": {"from": "projects", "localField": "_id", "foreignField": "_id", "as": "project"}},
        {
            "$project": {
                "_id": 0,
                "project_id": "$_id",
                "project_name": {"$arrayElemAt": ["$project.title", 0]},
                "amount": 1,
                "hours": 1,
            }
        },
    ]


def earnings_totals_pipeline(match: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"$match": match},
        {
            "$group": {
                "_id": None,
                "total_earned": {"$sum": "$amount"},
                "total_hours": {"$sum": "$hours_worked"},
                "projects": {"$addToSet": "$project_id"},
                "average_hourly_rate": {
                    "$avg": {
                        "$cond": [
                            {"$gt": ["$hours_worked", 0]},
                            {"$divide": ["$amount", "$hours_worked"]},
                            None,
                        ]
                    }
                },
            }
        },
        {
            "$project": {
                "_id": 0,
                "total_earned": 1,
                "total_hours": 1,
                "project_count": {"$size": "$projects"},
                "average_hourly_rate": 1,
            }
        },
    ]


class EarningsService:
    """
    Service for a developer's earnings and payments.
    """

    def __init__(self, db):
        self.db = db
        self.collection_name = "earnings"

    @property
    def collection(self):
        return self.db.get_collection(self.collection_name)

    @property
    def payments(self):
        return self.db.get_collection("payments")

    async def _aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return await self.collection.aggregate(pipeline).to_list(length=None)

    async def summary(self, developer_id: str) -> Dict[str, float]:
        rows = await self._aggregate(
            [
                {"$match": {"developer_id": to_object_id(developer_id)}},
                {"$group": {"_id": "$status", "total": {"$sum": "$amount"}, "count": {"$sum": 1}}},
            ]
        )
        summary = {"pending": 0, "available": 0, "paid": 0, "total": 0}
        for row in rows:
            if row["_id"] in summary:
                summary[row["_id"]] = row["total"]
            summary["total"] += row["total"]
        return summary

    async def overview(self, developer_id: str) -> Dict[str, Any]:
        cursor = (
            self.collection.find({"developer_id": to_object_id(developer_id)})
            .sort("earned_at", DESCENDING)
            .limit(10)
        )
        recent = await cursor.to_list(length=10)
        return {"recent_earnings": serialize_documents(recent), "summary": await self.summary(developer_id)}

    async def stats(self, developer_id: str, period: str = "month", now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        match = earnings_match(to_object_id(developer_id), period, now)
        by_time = await self._aggregate(earnings_by_time_pipeline(match, period))
        by_project = await self._aggregate(earnings_by_project_pipeline(match))
        totals = await self._aggregate(earnings_totals_pipeline(match))
        return {
            "earnings_by_time": by_time,
            "earnings_by_project": serialize_documents(by_project),
            "stats": totals[0] if totals else dict(EMPTY_STATS),
        }

    async def payment_history(
        self, developer_id: str, page: int, limit: int, status: Optional[str] = None
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"developer_id": to_object_id(developer_id)}
        if status:
            query["status"] = status
        cursor = self.payments.find(query).sort("created_at", DESCENDING).skip(skip_for(page, limit)).limit(limit)
        payments = await cursor.to_list(length=limit)
        total = await self.payments.count_documents(query)
        return {
            "success": True,
            "data": serialize_documents(payments),
            "pagination": build_pagination(page, limit, total),
        }

    async def available_balance(self, developer_id: str) -> float:
        rows = await self._aggregate(
            [
                {"$match": {"developer_id": to_object_id(developer_id), "status": "available"}},
                {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
            ]
        )
        return rows[0]["total"] if rows else 0

    async def request_payout(self, developer_id: str, request: PayoutRequest) -> Dict[str, Any]:
        if not request.amount or request.amount <= 0:
            raise BusinessRuleError("Please enter a valid amount")

        available = await self.available_balance(developer_id)
        if request.amount > available:
            raise BusinessRuleError(f"Insufficient funds. Available: ${available}")

        now = datetime.now(timezone.utc)
        payment = {
            "developer_id": to_object_id(developer_id),
            "project_id": None,
            "amount": request.amount,
            "payment_method": request.method,
            "description": "Payout requested by developer",
            "notes": request.notes,
            "status": "pending",
            "requested_at": now,
            "created_at": now,
        }
        result = await self.payments.insert_one(payment)
        payment["_id"] = result.inserted_id
        logger.info("Developer %s requested a payout of %.2f", developer_id, request.amount)
        return serialize_document(payment)
