# dairy_ledger/generate_data.py
import csv
import logging
import random
import uuid
from datetime import datetime, timedelta
from pathlib import Path

from faker import Faker
from prefect import flow, task

from .config import settings
from .processing import run_csv_pipeline

logger = logging.getLogger(__name__)

HEADERS = [
    "type", "date", "quantity", "price_per_liter", "total_amount",
    "buyer", "buyer_phone", "seller", "seller_phone", "notes",
]

# Most of the farm's volume is sales to regular household buyers
SALE_WEIGHT = 0.85


def fake_buyer_book(fake: Faker, size: int = 25):
    """A small fixed set of (name, 10 digit mobile) pairs to sell to."""
    return [(fake.name(), fake.numerify("9#########")) for _ in range(size)]


def fake_milk_row(fake: Faker, when: datetime, buyers) -> dict:
    quantity = round(random.uniform(0.5, 10.0), 1)  # nosec B311
    price = random.choice([45, 48, 50, 55, 60])  # nosec B311
    row = {
        "type": "sale",
        "date": when.isoformat(),
        "quantity": quantity,
        "price_per_liter": price,
        "total_amount": round(quantity * price, 2),
        "buyer": "",
        "buyer_phone": "",
        "seller": "",
        "seller_phone": "",
        "notes": "",
    }
    if random.random() < SALE_WEIGHT:  # nosec B311
        name, mobile = random.choice(buyers)  # nosec B311
        row.update(buyer=name, buyer_phone=mobile)
    else:
        row.update(type="purchase", seller=fake.name(), seller_phone=fake.numerify("8#########"))
    return row


def write_milk_csv(file_path: Path, rows: int, start: datetime, end: datetime) -> Path:
    fake = Faker()
    buyers = fake_buyer_book(fake)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, mode="w", newline="") as file:
        writer = csv.DictWriter(file, fieldnames=HEADERS)
        writer.writeheader()
        for _ in range(rows):
            when = fake.date_time_between(start_date=start, end_date=end)
            writer.writerow(fake_milk_row(fake, when, buyers))

    return file_path


@task
def generate_daily_batch(rows: int = 40):
    file_path = Path(settings.UPLOAD_DIR) / f"daily_batch_{uuid.uuid4()}.csv"

    yesterday_start = (datetime.now() - timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    yesterday_end = yesterday_start.replace(hour=23, minute=59, second=59)

    logger.info("Generating %d rows for %s into %s", rows, yesterday_start.date(), file_path)
    return str(write_milk_csv(file_path, rows, yesterday_start, yesterday_end))


@task
def generate_bulk_csv(rows: int):
    file_path = Path(settings.UPLOAD_DIR) / f"bulk_batch_{uuid.uuid4()}.csv"
    now = datetime.now()

    logger.info("Generating %d rows into %s", rows, file_path)
    return str(write_milk_csv(file_path, rows, now - timedelta(days=365), now))


@flow(name="Nightly Milk Ledger Generator")
def run_nightly_generation():
    daily_file_path = generate_daily_batch()
    run_csv_pipeline(file_path=daily_file_path, database_url=settings.get_database_url())


@flow(name="Bulk Milk Ledger Generator")
def run_bulk_generation(num_rows: int = 10000):
    """
    Generates a specified number of dummy milk transactions and ingests them into the database.
    """
    file_path = generate_bulk_csv(rows=num_rows)
    run_csv_pipeline(file_path=file_path, database_url=settings.get_database_url())
