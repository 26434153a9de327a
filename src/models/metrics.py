"""
Aggregated Metric Models

Results of the aggregation engine. Every value here is already converted
into the display currency.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.models.ledger import Currency, RecordKind


class MetricKind(str, Enum):
    """Headline metrics shown on the dashboard."""
    NET_WORTH = "net_worth"
    TOTAL_DEBT = "total_debt"
    PROJECTED_BALANCE = "projected_balance"
    MONTHLY_RESULT = "monthly_result"


class LineItemSign(str, Enum):
    """Whether a line item brings money in, takes it out, or neither."""
    CREDIT = "credit"
    DEBIT = "debit"
    NEUTRAL = "neutral"


class LineItem(BaseModel):
    """
    One contribution to a headline metric.

    `value` is the signed contribution in the display currency.
    Summing `value` over a drill-down gives the metric itself.
    """

    label: str
    kind: RecordKind
    record_id: str
    amount: float = Field(description="Original amount, unsigned")
    currency: Currency = Field(description="Original currency")
    value: float = Field(description="Signed converted contribution")
    sign: LineItemSign
    date: Optional[datetime] = None
    note: Optional[str] = Field(
        default=None,
        description="Why the item counts (e.g. 'weekly x4', 'due on 15')"
    )


class CategoryAmount(BaseModel):
    """Current-month spending in one category."""

    category: str
    amount: float


class FinancialMetrics(BaseModel):
    """The four headline metrics plus the category breakdown."""

    currency: Currency
    net_worth: float
    total_debt: float
    projected_balance: float
    monthly_result: float
    category_breakdown: list[CategoryAmount] = Field(default_factory=list)

    def value_of(self, metric: MetricKind) -> float:
        """Return one headline metric by kind."""
        return getattr(self, MetricKind(metric).value)
