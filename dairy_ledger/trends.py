# dairy_ledger/trends.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from .aggregation import ZERO, Aggregate, build_query, run_aggregation
from .models import SALE
from .readers import TransactionReader
from .time_ranges import TrendWindow, bucket_key


@dataclass(frozen=True)
class TrendBucket:
    date_key: str
    label: str
    total_quantity: Decimal
    total_amount: Decimal


def assemble_trend_series(sparse: Dict[str, Aggregate], window: TrendWindow) -> List[TrendBucket]:
    """
    Turns a sparse {bucket key: Aggregate} mapping into exactly
    `window.length` buckets in chronological order. Buckets without
    transactions are emitted with zero totals so charts keep empty days.
    """
    series = []
    for index in range(window.length):
        current = window.bucket_start(index)
        key = bucket_key(current, window.unit)
        entry = sparse.get(key)
        series.append(
            TrendBucket(
                date_key=key,
                label=window.format_label(current),
                total_quantity=entry.total_quantity if entry else ZERO,
                total_amount=entry.total_amount if entry else ZERO,
            )
        )
    return series


def build_trend(reader: TransactionReader, window: TrendWindow, buyer_mobile: Optional[str] = None) -> List[TrendBucket]:
    query = build_query(window.start, window.end, SALE, buyer_mobile=buyer_mobile, unit=window.unit)
    return assemble_trend_series(run_aggregation(reader, query), window)
