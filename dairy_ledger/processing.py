# dairy_ledger/processing.py
import io
import logging
from pathlib import Path

import pandas as pd
from prefect import flow, task
from sqlalchemy.engine import Engine

from .database import build_engine
from .models import TRANSACTION_TYPES

logger = logging.getLogger(__name__)

CHUNK_SIZE = 50_000  # Process 50,000 rows at a time

REQUIRED_COLUMNS = {"type", "date", "quantity", "price_per_liter", "total_amount"}
OPTIONAL_COLUMNS = ["buyer", "buyer_phone", "seller", "seller_phone", "notes"]
NUMERIC_COLUMNS = ["quantity", "price_per_liter", "total_amount"]

# Phone numbers must stay strings so leading zeros and spacing survive
TEXT_DTYPES = {column: str for column in OPTIONAL_COLUMNS}


def _check_columns(df: pd.DataFrame):
    if not REQUIRED_COLUMNS.issubset(df.columns):
        missing_cols = REQUIRED_COLUMNS - set(df.columns)
        raise ValueError(f"CSV file is missing required columns: {', '.join(sorted(missing_cols))}")


def _clean_chunk(chunk_df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalises one chunk of a milk ledger: UTC-naive dates at millisecond
    resolution, numeric amounts, lowercase types and trimmed text with blanks stored as NULL.
    """
    chunk_df = chunk_df.copy()
    chunk_df["type"] = chunk_df["type"].astype(str).str.strip().str.lower()
    unknown_types = set(chunk_df["type"]) - set(TRANSACTION_TYPES)
    if unknown_types:
        raise ValueError(f"unknown transaction type(s): {', '.join(sorted(unknown_types))}")

    chunk_df["date"] = pd.to_datetime(chunk_df["date"], format="mixed", utc=True).dt.tz_convert(None).dt.floor("ms")

    for column in NUMERIC_COLUMNS:
        # This will raise a ValueError if conversion fails
        chunk_df[column] = pd.to_numeric(chunk_df[column])
        if (chunk_df[column] < 0).any():
            raise ValueError(f"column '{column}' contains negative values")

    for column in OPTIONAL_COLUMNS:
        if column not in chunk_df.columns:
            chunk_df[column] = None
            continue
        cleaned = chunk_df[column].where(chunk_df[column].notna(), "").astype(str).str.strip()
        chunk_df[column] = cleaned.where(cleaned != "", None)

    return chunk_df[["type", "date", *NUMERIC_COLUMNS, *OPTIONAL_COLUMNS]]


def validate_csv_format(file_contents: bytes):
    """
    Validates CSV format and structure without processing the entire file.

    Args:
        file_contents: The CSV file contents as bytes

    Raises:
        ValueError: If the CSV format is invalid
    """
    try:
        buffer = io.StringIO(file_contents.decode('utf-8'))
        # Read just the first few rows to validate structure
        sample_df = pd.read_csv(buffer, nrows=5, dtype=TEXT_DTYPES)
    except Exception as e:
        raise ValueError(f"Invalid CSV format: {e}")

    _check_columns(sample_df)

    try:
        _clean_chunk(sample_df)
    except ValueError as e:
        raise ValueError(f"CSV file contains corrupt or malformed data: {e}")


def load_csv_into_db(file_path: str, engine: Engine) -> int:
    """
    Processes a milk ledger CSV in chunks and appends it to 'milk_transactions'.

    Args:
        file_path: Path of the CSV file
        engine: SQLAlchemy engine for database connection

    Returns:
        int: Total number of rows processed
    """
    total_rows = 0

    try:
        # Use the 'chunksize' argument to create an iterator
        for chunk_df in pd.read_csv(file_path, chunksize=CHUNK_SIZE, dtype=TEXT_DTYPES):
            _check_columns(chunk_df)
            cleaned = _clean_chunk(chunk_df)

            cleaned.to_sql(
                'milk_transactions',
                con=engine,
                if_exists='append',
                index=False,
            )
            total_rows += len(cleaned)
    except ValueError as e:
        raise ValueError(f"CSV file contains corrupt or malformed data: {e}")

    logger.info("Imported %d milk transactions from %s", total_rows, file_path)
    return total_rows


def import_uploaded_csv(file_path: str, engine: Engine) -> int:
    """Imports an uploaded CSV, then removes it whether or not the import succeeded."""
    try:
        return load_csv_into_db(file_path, engine)
    finally:
        Path(file_path).unlink(missing_ok=True)
        logger.debug("Removed upload %s", file_path)


@task
def process_csv_to_db(file_path: str, database_url: str) -> int:
    """Prefect wrapper around load_csv_into_db for worker deployments."""
    engine = build_engine(database_url)
    try:
        return load_csv_into_db(file_path, engine)
    finally:
        engine.dispose()


@flow(name="Milk Ledger CSV Import")
def run_csv_pipeline(file_path: str, database_url: str):
    return process_csv_to_db(file_path=file_path, database_url=database_url)
