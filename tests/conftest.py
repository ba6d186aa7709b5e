# tests/conftest.py
import os
import shutil
from datetime import datetime
from decimal import Decimal

import pytest

os.environ["PREFECT_TEST_MODE"] = "1"
os.environ["PREFECT_LOGGING_LEVEL"] = "ERROR"
os.environ["UPLOAD_DIR"] = "./test_shared_data"

# A file database so that the prefect task, which opens its own engine, sees the same data
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///./test_dairy_ledger.db")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from fastapi.testclient import TestClient

# Import app and global variables
from dairy_ledger.database import Base, build_engine
from dairy_ledger.main import app, get_db, get_engine, get_now
from dairy_ledger.models import CharaPurchase, MilkTransaction, User, UserRole
from dairy_ledger.readers import ReportReaders
from sqlalchemy.orm import sessionmaker

# 1. Configure Engine
test_engine = build_engine(TEST_DATABASE_URL)

# 2. Create Testing Session
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

# The fixed "now" used by report tests
REPORT_NOW = datetime(2024, 3, 7, 12, 30)


@pytest.fixture(scope="function")
def db_session():
    """
    Creates a fresh database session for a single test.
    """
    # Create tables (INCLUDING INDEXES from models.py)
    Base.metadata.create_all(bind=test_engine)

    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        # Drop tables to clean up
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def readers(db_session):
    return ReportReaders.from_session(db_session)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Overrides the dependency injection to use our test database and a fixed clock.
    """
    def get_test_db_override():
        yield db_session

    def get_test_engine_override():
        yield test_engine

    app.dependency_overrides[get_db] = get_test_db_override
    app.dependency_overrides[get_engine] = get_test_engine_override
    app.dependency_overrides[get_now] = lambda: REPORT_NOW

    # TestClient runs background tasks SYNCHRONOUSLY, which is great for testing.
    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_files():
    yield
    # Runs after all tests are done
    if os.path.exists("./test_shared_data"):
        shutil.rmtree("./test_shared_data")
    test_engine.dispose()
    if TEST_DATABASE_URL.startswith("sqlite:///./") and os.path.exists(TEST_DATABASE_URL[len("sqlite:///"):]):
        os.remove(TEST_DATABASE_URL[len("sqlite:///"):])


def add_sale(db, date, quantity, price, buyer_phone=None, total=None):
    tx = MilkTransaction(
        type="sale",
        date=date,
        quantity=Decimal(str(quantity)),
        price_per_liter=Decimal(str(price)),
        total_amount=Decimal(str(total if total is not None else quantity * price)),
        buyer_phone=buyer_phone,
    )
    db.add(tx)
    db.commit()
    return tx


def add_purchase(db, date, quantity, price, seller_phone=None):
    tx = MilkTransaction(
        type="purchase",
        date=date,
        quantity=Decimal(str(quantity)),
        price_per_liter=Decimal(str(price)),
        total_amount=Decimal(str(quantity * price)),
        seller_phone=seller_phone,
    )
    db.add(tx)
    db.commit()
    return tx


def add_chara_purchase(db, date, quantity, price):
    purchase = CharaPurchase(
        date=date,
        quantity=Decimal(str(quantity)),
        price_per_kg=Decimal(str(price)),
        total_amount=Decimal(str(quantity * price)),
    )
    db.add(purchase)
    db.commit()
    return purchase


def add_buyer(db, name, mobile, role=UserRole.CONSUMER):
    user = User(name=name, mobile=mobile, role=role)
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope="function")
def march_sales(db_session):
    """
    Two sales to buyer 9876543210: 5L @ 50 on 1 March and 3L @ 60 on 2 March 2024.
    """
    add_buyer(db_session, "Ramesh Patel", "9876543210")
    add_sale(db_session, datetime(2024, 3, 1, 6, 0), 5, 50, buyer_phone="9876543210")
    add_sale(db_session, datetime(2024, 3, 2, 18, 45), 3, 60, buyer_phone="9876543210")
    return db_session
