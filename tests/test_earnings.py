from datetime import datetime, timezone

import pytest
from bson import ObjectId

from webnest.errors import BusinessRuleError
from webnest.models.earnings_models import PayoutRequest
from webnest.services.earnings_service import EarningsService, earnings_match, period_start

DEVELOPER_ID = "64b0000000000000000000d1"


async def _seed_earnings(db, developer_id=DEVELOPER_ID):
    for amount, status in ((200, "available"), (100, "available"), (50, "pending"), (400, "paid")):
        await db.get_collection("earnings").insert_one(
            {"developer_id": ObjectId(developer_id), "amount": amount, "status": status, "hours_worked": 4}
        )


# ============================================================================
# Periods
# ============================================================================


def test_week_starts_on_sunday():
    wednesday = datetime(2024, 5, 15, 14, 30, tzinfo=timezone.utc)
    sunday = datetime(2024, 5, 19, 9, 0, tzinfo=timezone.utc)

    assert period_start("week", wednesday) == datetime(2024, 5, 12, tzinfo=timezone.utc)
    assert period_start("week", sunday) == datetime(2024, 5, 19, tzinfo=timezone.utc)


def test_month_year_and_all_time():
    now = datetime(2024, 5, 15, 14, 30, tzinfo=timezone.utc)

    assert period_start("month", now) == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert period_start("year", now) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert period_start("all", now) is None
    assert "earned_at" not in earnings_match(None, "all", now)


# ============================================================================
# Summary and payouts
# ============================================================================


@pytest.mark.asyncio
async def test_summary_groups_by_status(fake_db):
    await _seed_earnings(fake_db)
    await _seed_earnings(fake_db, developer_id="64b0000000000000000000d2")

    summary = await EarningsService(fake_db).summary(DEVELOPER_ID)

    assert summary == {"pending": 50, "available": 300, "paid": 400, "total": 750}


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -25])
async def test_payout_rejects_non_positive_amount(fake_db, amount):
    with pytest.raises(BusinessRuleError) as exc_info:
        await EarningsService(fake_db).request_payout(DEVELOPER_ID, PayoutRequest(amount=amount))

    assert exc_info.value.message == "Please enter a valid amount"


@pytest.mark.asyncio
async def test_payout_above_available_balance_is_rejected(fake_db):
    await _seed_earnings(fake_db)

    with pytest.raises(BusinessRuleError) as exc_info:
        await EarningsService(fake_db).request_payout(DEVELOPER_ID, PayoutRequest(amount=301))

    assert exc_info.value.message == "Insufficient funds. Available: $300"
    assert await fake_db.get_collection("payments").count_documents({}) == 0


@pytest.mark.asyncio
async def test_payout_creates_pending_payment(fake_db):
    await _seed_earnings(fake_db)
    service = EarningsService(fake_db)

    payment = await service.request_payout(DEVELOPER_ID, PayoutRequest(amount=300, method="paypal"))

    assert payment["status"] == "pending"
    assert payment["amount"] == 300
    assert payment["payment_method"] == "paypal"
    history = await service.payment_history(DEVELOPER_ID, page=1, limit=20)
    assert history["pagination"]["total"] == 1
    assert history["data"][0]["id"] == payment["id"]
