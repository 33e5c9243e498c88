from typing import Literal, Optional

from pydantic import BaseModel, Field

EarningStatus = Literal["pending", "available", "paid"]
PaymentStatus = Literal["pending", "processing", "completed", "failed"]
StatsPeriod = Literal["week", "month", "year", "all"]


class PayoutRequest(BaseModel):
    """
    Developer request to withdraw available earnings.
    """
    amount: float = Field(..., description="Amount to withdraw")
    method: Literal["bank_transfer", "paypal", "stripe"] = "bank_transfer"
    notes: Optional[str] = None
