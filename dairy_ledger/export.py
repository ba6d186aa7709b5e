# dairy_ledger/export.py
import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .aggregation import build_query, to_decimal
from .buyers import UnknownBuyer, normalize_mobile, resolve_buyers
from .models import SALE
from .readers import ReportReaders
from .time_ranges import month_range, to_utc

logger = logging.getLogger(__name__)

CSV_HEADERS = ["Buyer Name", "Mobile", "Date", "Quantity (L)", "Price per L", "Total Amount"]

TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class CsvExport:
    filename: str
    content: str
    row_count: int


def format_amount(value) -> str:
    return str(to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def export_filename(year: int, month: int) -> str:
    return f"buyer-purchases-{year}-{month:02d}.csv"


def build_buyer_consumption_csv(
    readers: ReportReaders,
    year=None,
    month=None,
    buyer_mobile: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CsvExport:
    """
    Builds the monthly buyer purchase sheet.

    Sale transactions in the month (optionally only one buyer's) are joined
    with buyer names and sorted by date. Rows are separated by '\\n' with no
    trailing newline; fields are quoted only when they contain a comma,
    a double quote or a line break.
    """
    period = month_range(year, month, now)
    buyer_mobile = normalize_mobile(buyer_mobile)
    query = build_query(period.start, period.end, SALE, buyer_mobile=buyer_mobile)

    rows = [
        row
        for row in readers.transactions.find_transactions(SALE, period.start, period.end, buyer_mobile=buyer_mobile)
        if query.matches(row)
    ]
    # sorted() is stable, so same-instant sales keep the reader's order
    rows = sorted(rows, key=lambda row: to_utc(row.date))

    mobiles = {normalize_mobile(row.buyer_phone) for row in rows} - {None}
    buyers = resolve_buyers(readers.users, sorted(mobiles), consumers_only=False)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADERS)
    for row in rows:
        mobile = normalize_mobile(row.buyer_phone)
        buyer = buyers.get(mobile) or UnknownBuyer(mobile=mobile or "")
        writer.writerow([
            buyer.name,
            mobile or "",
            to_utc(row.date).strftime("%Y-%m-%d"),
            format_amount(row.quantity),
            format_amount(row.price_per_liter),
            format_amount(row.total_amount),
        ])

    logger.info("Exported %d sale rows for %04d-%02d", len(rows), period.year, period.month)
    return CsvExport(
        filename=export_filename(period.year, period.month),
        content=buffer.getvalue()[:-1],
        row_count=len(rows),
    )
