# dairy_ledger/aggregation.py
"""
Filter and group specifications for report aggregations.

A query says which transactions count (type, closed date range, optional
buyer) and how they are grouped (one total group, or one group per UTC day
or month). Sums are exact Decimal additions.
"""
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Optional

from .buyers import normalize_mobile
from .readers import TransactionReader
from .time_ranges import DAY, MONTH, bucket_key, to_utc

TOTAL_KEY = "__total__"

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass
class Aggregate:
    total_quantity: Decimal = ZERO
    total_amount: Decimal = ZERO
    transaction_count: int = 0

    def add(self, row) -> None:
        self.total_quantity += to_decimal(getattr(row, "quantity", None))
        self.total_amount += to_decimal(getattr(row, "total_amount", None))
        self.transaction_count += 1

    @property
    def average_rate(self) -> Decimal:
        if not self.total_quantity:
            return ZERO
        return self.total_amount / self.total_quantity


@dataclass(frozen=True)
class AggregationQuery:
    start: datetime
    end: datetime
    transaction_type: Optional[str] = None
    buyer_mobile: Optional[str] = None
    unit: Optional[str] = None

    def matches(self, row) -> bool:
        if self.transaction_type and getattr(row, "type", None) != self.transaction_type:
            return False
        if not self.start <= to_utc(row.date) <= self.end:
            return False
        if self.buyer_mobile:
            return normalize_mobile(getattr(row, "buyer_phone", None)) == self.buyer_mobile
        return True

    def group_key(self, row) -> str:
        if self.unit is None:
            return TOTAL_KEY
        return bucket_key(row.date, self.unit)


def build_query(start, end, transaction_type=None, buyer_mobile=None, unit=None) -> AggregationQuery:
    if unit not in (None, DAY, MONTH):
        raise ValueError(f"Unsupported aggregation unit: {unit}")
    return AggregationQuery(
        start=to_utc(start),
        end=to_utc(end),
        transaction_type=transaction_type,
        buyer_mobile=normalize_mobile(buyer_mobile),
        unit=unit,
    )


def aggregate_rows(rows: Iterable, query: AggregationQuery) -> Dict[str, Aggregate]:
    groups: Dict[str, Aggregate] = OrderedDict()
    for row in rows:
        if not query.matches(row):
            continue
        groups.setdefault(query.group_key(row), Aggregate()).add(row)
    return groups


def run_aggregation(reader: TransactionReader, query: AggregationQuery) -> Dict[str, Aggregate]:
    rows = reader.find_transactions(
        query.transaction_type, query.start, query.end, buyer_mobile=query.buyer_mobile
    )
    return aggregate_rows(rows, query)


def total(reader: TransactionReader, query: AggregationQuery) -> Aggregate:
    """Single-group aggregation; an empty result is a zero Aggregate."""
    if query.unit is not None:
        query = AggregationQuery(query.start, query.end, query.transaction_type, query.buyer_mobile)
    return run_aggregation(reader, query).get(TOTAL_KEY, Aggregate())


def sum_rows(rows: Iterable, query: AggregationQuery) -> Aggregate:
    return aggregate_rows(rows, query).get(TOTAL_KEY, Aggregate())


def aggregate_by_buyer(rows: Iterable, query: AggregationQuery) -> Dict[str, Aggregate]:
    """Groups matching rows by normalized buyer phone, skipping blank phones."""
    groups: Dict[str, Aggregate] = OrderedDict()
    for row in rows:
        if not query.matches(row):
            continue
        mobile = normalize_mobile(getattr(row, "buyer_phone", None))
        if mobile is None:
            continue
        groups.setdefault(mobile, Aggregate()).add(row)
    return groups
