# dairy_ledger/dashboard.py
"""
Composes the dashboard summary served to the mobile client.

Every block defaults to zeros or empty lists when there is no data, so the
response shape never changes. Reader errors are not caught here.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .aggregation import Aggregate, aggregate_by_buyer, build_query, sum_rows, total
from .buyers import normalize_mobile, resolve_buyer, resolve_buyers
from .models import PURCHASE, SALE
from .readers import ReportReaders
from .schemas import (
    BuyerConsumption,
    DashboardSummary,
    ExpenseBreakdown,
    SalesStat,
    SelectedBuyer,
    TrendMetadata,
    TrendPoint,
)
from .time_ranges import DateRange, TrendWindow, bucket_key, day_range, month_to_date, trend_window, utcnow
from .trends import TrendBucket, build_trend

logger = logging.getLogger(__name__)


def to_sales_stat(aggregate: Aggregate) -> SalesStat:
    return SalesStat(
        quantity=aggregate.total_quantity,
        amount=aggregate.total_amount,
        transactions=aggregate.transaction_count,
    )


def to_trend_points(series: List[TrendBucket]) -> List[TrendPoint]:
    return [
        TrendPoint(
            date=bucket.date_key,
            label=bucket.label,
            total_quantity=bucket.total_quantity,
            total_amount=bucket.total_amount,
        )
        for bucket in series
    ]


def rank_buyers(groups: Dict[str, Aggregate]) -> List[str]:
    """
    Orders buyer mobiles by quantity, then amount, both descending.
    Remaining ties go to the lower mobile number.
    """
    return sorted(
        groups,
        key=lambda mobile: (-groups[mobile].total_quantity, -groups[mobile].total_amount, mobile),
    )


def compute_daily_expenses(readers: ReportReaders, today: DateRange) -> Tuple[Decimal, Decimal]:
    """Today's (chara purchases, milk purchases) spend."""
    chara_rows = readers.chara_purchases.find_purchases(today.start, today.end)
    chara_total = sum_rows(chara_rows, build_query(today.start, today.end))
    milk_total = total(readers.transactions, build_query(today.start, today.end, PURCHASE))
    return chara_total.total_amount, milk_total.total_amount


def compute_user_consumptions(readers: ReportReaders, month: DateRange) -> List[BuyerConsumption]:
    query = build_query(month.start, month.end, SALE)
    rows = readers.transactions.find_transactions(SALE, month.start, month.end)
    groups = aggregate_by_buyer(rows, query)
    ranked = rank_buyers(groups)
    buyers = resolve_buyers(readers.users, ranked)

    consumptions = []
    for mobile in ranked:
        aggregate = groups[mobile]
        buyer = buyers[mobile]
        consumptions.append(
            BuyerConsumption(
                user_id=buyer.user_id,
                name=buyer.name,
                mobile=mobile,
                total_quantity=aggregate.total_quantity,
                total_amount=aggregate.total_amount,
                average_rate=aggregate.average_rate,
            )
        )
    return consumptions


def compute_selected_buyer(
    readers: ReportReaders,
    buyer_mobile: str,
    today: DateRange,
    month: DateRange,
    window: TrendWindow,
) -> SelectedBuyer:
    buyer = resolve_buyer(readers.users, buyer_mobile)
    daily = total(readers.transactions, build_query(today.start, today.end, SALE, buyer_mobile))
    monthly = total(readers.transactions, build_query(month.start, month.end, SALE, buyer_mobile))
    trend = build_trend(readers.transactions, window, buyer_mobile=buyer_mobile)

    return SelectedBuyer(
        user_id=buyer.user_id,
        name=buyer.name,
        mobile=buyer_mobile,
        daily_sales=to_sales_stat(daily),
        monthly_sales=to_sales_stat(monthly),
        trend=to_trend_points(trend),
        average_rate=monthly.average_rate,
    )


def build_trend_metadata(window: TrendWindow) -> TrendMetadata:
    return TrendMetadata(
        period=window.period,
        period_label=window.label,
        unit=window.unit,
        length=window.length,
        start_date=bucket_key(window.start, window.unit),
        end_date=bucket_key(window.end, window.unit),
    )


def compose_dashboard_summary(
    readers: ReportReaders,
    trend_period: Optional[str] = None,
    buyer_mobile: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DashboardSummary:
    now = now or utcnow()
    today = day_range(now)
    month = month_to_date(today)
    window = trend_window(trend_period, today)
    buyer_mobile = normalize_mobile(buyer_mobile)

    logger.debug("Composing %s dashboard summary (buyer=%s)", window.period, buyer_mobile)

    chara_expense, milk_expense = compute_daily_expenses(readers, today)
    daily_sales = total(readers.transactions, build_query(today.start, today.end, SALE))
    monthly_sales = total(readers.transactions, build_query(month.start, month.end, SALE))
    consumptions = compute_user_consumptions(readers, month)
    sales_trend = build_trend(readers.transactions, window)

    selected_buyer = None
    if buyer_mobile:
        selected_buyer = compute_selected_buyer(readers, buyer_mobile, today, month, window)

    return DashboardSummary(
        generated_at=now,
        daily_expenses=chara_expense + milk_expense,
        daily_expense_breakdown=ExpenseBreakdown(chara_purchases=chara_expense, milk_purchases=milk_expense),
        daily_sales=to_sales_stat(daily_sales),
        monthly_sales=to_sales_stat(monthly_sales),
        user_consumptions=consumptions,
        sales_trend=to_trend_points(sales_trend),
        selected_buyer=selected_buyer,
        trend_metadata=build_trend_metadata(window),
    )
