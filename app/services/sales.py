"""
Sales Aggregator

Read-side summaries over bill history. The module-level functions are pure
and take any iterable of bills; ``SalesAggregator`` loads bills from a
repository and feeds them through.
"""

import logging
from datetime import date, datetime, time
from typing import Any, Iterable, Optional, Union
from zoneinfo import ZoneInfo

from app.core.exceptions import ValidationError
from app.domain import BillRecord, DailySummary, PaymentMethod, SalesSummary, TopItem
from app.repositories.base import BillRepository

logger = logging.getLogger(__name__)

DEFAULT_TOP_ITEMS_LIMIT = 10
END_OF_DAY = time(23, 59, 59, 999000)


# =============================================================================
# PURE AGGREGATIONS
# =============================================================================

def summarize_sales(bills: Iterable[BillRecord]) -> SalesSummary:
    """Totals, average order value and revenue per payment method."""
    total_bills = 0
    total_revenue = 0.0
    total_discount = 0.0
    breakdown: dict[str, float] = {}

    for bill in bills:
        total_bills += 1
        total_revenue += bill.total_amount
        total_discount += bill.discount
        method = bill.payment_method.value
        breakdown[method] = breakdown.get(method, 0.0) + bill.total_amount

    return SalesSummary(
        total_bills=total_bills,
        total_revenue=total_revenue,
        total_discount=total_discount,
        average_order_value=total_revenue / total_bills if total_bills else 0.0,
        payment_method_breakdown=breakdown,
    )


def top_selling_items(
    bills: Iterable[BillRecord],
    limit: int = DEFAULT_TOP_ITEMS_LIMIT,
) -> list[TopItem]:
    """
    Group line items by name across bills, most grams sold first.

    Bills are scanned oldest first. Items with equal quantity keep the order
    in which their name first appeared; the icon is the first one seen.
    """
    if limit < 1:
        raise ValidationError("limit must be at least 1")

    totals: dict[str, dict[str, Any]] = {}
    for bill in sorted(bills, key=lambda b: b.timestamp):
        for item in bill.items:
            entry = totals.setdefault(
                item.item_name,
                {"name": item.item_name, "icon": item.icon, "quantity_sold": 0.0, "revenue": 0.0},
            )
            entry["quantity_sold"] += item.quantity_in_grams
            entry["revenue"] += item.total_price

    ranked = sorted(totals.values(), key=lambda e: e["quantity_sold"], reverse=True)
    return [TopItem(**entry) for entry in ranked[:limit]]


# =============================================================================
# DATE HELPERS
# =============================================================================

def parse_timestamp(value: Union[str, datetime, date], tz: ZoneInfo) -> datetime:
    """
    Parse an ISO-8601 date or datetime into an aware datetime.

    Naive values are read in ``tz``; a bare date means its midnight.

    Raises:
        ValidationError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid date: {value}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def parse_day(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """[00:00:00.000, 23:59:59.999] of ``day`` in ``tz``."""
    return (
        datetime.combine(day, time.min, tzinfo=tz),
        datetime.combine(day, END_OF_DAY, tzinfo=tz),
    )


# =============================================================================
# REPOSITORY FACADE
# =============================================================================

class SalesAggregator:
    """
    Summaries over the bills in a repository.

    Attributes:
        bills: Bill store to read from
        tz: Business time zone for calendar-day boundaries
        default_limit: Top-items limit when the caller passes none
    """

    def __init__(
        self,
        bills: BillRepository,
        tz: ZoneInfo = ZoneInfo("UTC"),
        default_limit: int = DEFAULT_TOP_ITEMS_LIMIT,
    ):
        self.bills = bills
        self.tz = tz
        self.default_limit = default_limit

    async def sales_summary(self) -> SalesSummary:
        return summarize_sales(await self.bills.list())

    async def daily_summary(self, day: Union[str, date]) -> DailySummary:
        """Bill count, revenue and discount for one calendar day."""
        day = parse_day(day)
        start, end = day_bounds(day, self.tz)
        summary = summarize_sales(await self.bills.list(start=start, end=end))
        return DailySummary(
            date=day,
            total_bills=summary.total_bills,
            total_revenue=summary.total_revenue,
            total_discount=summary.total_discount,
        )

    async def bills_in_range(
        self,
        start: Union[str, datetime, date],
        end: Union[str, datetime, date],
    ) -> list[BillRecord]:
        """Bills with start <= timestamp <= end, newest first."""
        start_at = parse_timestamp(start, self.tz)
        end_at = parse_timestamp(end, self.tz)
        if start_at > end_at:
            raise ValidationError("Start date must not be after end date")
        return await self.bills.list(start=start_at, end=end_at)

    async def bills_by_method(self, method: str) -> list[BillRecord]:
        try:
            payment_method = PaymentMethod(method)
        except ValueError:
            logger.debug(f"Unknown payment method filter: {method}")
            return []
        return await self.bills.list(payment_method=payment_method)

    async def top_items(self, limit: Optional[int] = None) -> list[TopItem]:
        return top_selling_items(await self.bills.list(), limit or self.default_limit)
