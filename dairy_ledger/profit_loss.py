# dairy_ledger/profit_loss.py
"""Profit and loss over today, the month to date or the year to date."""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .aggregation import ZERO, build_query, sum_rows, to_decimal, total
from .models import PURCHASE, SALE
from .readers import ReportReaders
from .schemas import ProfitLossDetails, ProfitLossReport
from .time_ranges import DateRange, day_range, month_to_date, utcnow, year_to_date

DAILY = "daily"
MONTHLY = "monthly"
YEARLY = "yearly"

PROFIT_LOSS_PERIODS = (DAILY, MONTHLY, YEARLY)
DEFAULT_PROFIT_LOSS_PERIOD = MONTHLY


def normalize_profit_loss_period(period) -> str:
    normalized = str(period or "").strip().lower()
    if normalized in PROFIT_LOSS_PERIODS:
        return normalized
    return DEFAULT_PROFIT_LOSS_PERIOD


def profit_loss_range(period: str, now: datetime) -> DateRange:
    today = day_range(now)
    if period == DAILY:
        return today
    if period == YEARLY:
        return year_to_date(today)
    return month_to_date(today)


def _animal_total(readers: ReportReaders, transaction_type: str, span: DateRange) -> Decimal:
    rows = readers.animal_transactions.find_transactions(transaction_type, span.start, span.end)
    return sum((to_decimal(row.price) for row in rows), ZERO)


def compute_profit_loss(
    readers: ReportReaders,
    period: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ProfitLossReport:
    period = normalize_profit_loss_period(period)
    span = profit_loss_range(period, now or utcnow())

    milk_sales = total(readers.transactions, build_query(span.start, span.end, SALE)).total_amount
    milk_purchases = total(readers.transactions, build_query(span.start, span.end, PURCHASE)).total_amount
    chara_rows = readers.chara_purchases.find_purchases(span.start, span.end)
    chara_purchases = sum_rows(chara_rows, build_query(span.start, span.end)).total_amount
    animal_sales = _animal_total(readers, SALE, span)
    animal_purchases = _animal_total(readers, PURCHASE, span)
    other_expenses = ZERO

    revenue = milk_sales + animal_sales
    expenses = milk_purchases + animal_purchases + chara_purchases + other_expenses
    net = revenue - expenses

    return ProfitLossReport(
        period=period,
        start_date=span.start.strftime("%Y-%m-%d"),
        end_date=span.end.strftime("%Y-%m-%d"),
        total_revenue=revenue,
        total_expenses=expenses,
        profit=max(net, ZERO),
        loss=max(-net, ZERO),
        details=ProfitLossDetails(
            milk_sales=milk_sales,
            animal_sales=animal_sales,
            milk_purchases=milk_purchases,
            animal_purchases=animal_purchases,
            chara_purchases=chara_purchases,
            other_expenses=other_expenses,
        ),
    )
