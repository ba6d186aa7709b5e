# dairy_ledger/main.py
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy import Engine, or_, select
from sqlalchemy.orm import Session, joinedload

from . import processing
from .config import configure_logging, settings
from .dashboard import compose_dashboard_summary
from .database import Base, SessionLocal, engine as main_engine
from .export import build_buyer_consumption_csv
from .models import (
    ANIMAL_ACTIVE,
    ANIMAL_SOLD,
    PURCHASE,
    SALE,
    Animal,
    AnimalTransaction,
    CharaConsumption,
    CharaPurchase,
    MilkTransaction,
    Seller,
    User,
    UserRole,
)
from .profit_loss import compute_profit_loss
from .readers import ReportReaders
from .schemas import (
    AnimalCreate,
    AnimalOut,
    AnimalTransactionCreate,
    AnimalTransactionDetails,
    AnimalTransactionOut,
    BuyerCreate,
    BuyerOut,
    CharaConsumptionCreate,
    CharaConsumptionOut,
    CharaPurchaseCreate,
    CharaPurchaseOut,
    DashboardSummary,
    MilkTransactionCreate,
    MilkTransactionOut,
    ProfitLossReport,
    SellerCreate,
    SellerOut,
)
from .time_ranges import utcnow

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    Base.metadata.create_all(bind=main_engine)
    yield


app = FastAPI(
    title="Dairy Ledger API",
    description="Milk, fodder and animal ledgers with dashboard and buyer reports for a dairy farm.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency function for engine
def get_engine():
    yield main_engine


# Dependency function for database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_readers(db: Session = Depends(get_db)) -> ReportReaders:
    return ReportReaders.from_session(db)


# Reports are anchored to "now"; tests pin it
def get_now() -> datetime:
    return utcnow()


def _save(db: Session, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# This is the route for the root URL "/"
@app.get("/")
def read_root():
    return {"message": "Welcome to the Dairy Ledger API"}


# --- Milk ---

@app.get("/milk", response_model=List[MilkTransactionOut])
def list_milk_transactions(mobile: Optional[str] = None, db: Session = Depends(get_db)):
    """
    Lists milk transactions, newest first.
    - **mobile**: only transactions where this number is the buyer or the seller
    """
    query = select(MilkTransaction)
    mobile = mobile.strip() if mobile else None
    if mobile:
        query = query.where(or_(MilkTransaction.buyer_phone == mobile, MilkTransaction.seller_phone == mobile))
    return db.scalars(query.order_by(MilkTransaction.date.desc(), MilkTransaction.id.desc())).all()


def _create_milk_transaction(db: Session, transaction_type: str, payload: MilkTransactionCreate):
    try:
        return _save(db, MilkTransaction(type=transaction_type, **payload.model_dump()))
    except Exception as e:
        db.rollback()
        logger.exception("Failed to create milk %s", transaction_type)
        raise HTTPException(status_code=500, detail=f"Failed to create milk {transaction_type}: {e}")


@app.post("/milk/sale", response_model=MilkTransactionOut, status_code=201)
def create_milk_sale(payload: MilkTransactionCreate, db: Session = Depends(get_db)):
    return _create_milk_transaction(db, SALE, payload)


@app.post("/milk/purchase", response_model=MilkTransactionOut, status_code=201)
def create_milk_purchase(payload: MilkTransactionCreate, db: Session = Depends(get_db)):
    return _create_milk_transaction(db, PURCHASE, payload)


# --- Chara (fodder) ---

@app.get("/chara/purchases", response_model=List[CharaPurchaseOut])
def list_chara_purchases(db: Session = Depends(get_db)):
    return db.scalars(select(CharaPurchase).order_by(CharaPurchase.date.desc(), CharaPurchase.id.desc())).all()


@app.post("/chara/purchases", response_model=CharaPurchaseOut, status_code=201)
def create_chara_purchase(payload: CharaPurchaseCreate, db: Session = Depends(get_db)):
    return _save(db, CharaPurchase(**payload.model_dump()))


@app.get("/chara/consumptions", response_model=List[CharaConsumptionOut])
def list_chara_consumptions(db: Session = Depends(get_db)):
    return db.scalars(
        select(CharaConsumption).order_by(CharaConsumption.date.desc(), CharaConsumption.id.desc())
    ).all()


@app.post("/chara/consumptions", response_model=CharaConsumptionOut, status_code=201)
def create_chara_consumption(payload: CharaConsumptionCreate, db: Session = Depends(get_db)):
    return _save(db, CharaConsumption(**payload.model_dump()))


# --- Buyers ---

@app.get("/buyers", response_model=List[BuyerOut])
def list_buyers(db: Session = Depends(get_db)):
    query = select(User).where(User.role == UserRole.CONSUMER, User.is_active.is_(True)).order_by(User.name)
    return db.scalars(query).all()


@app.post("/buyers", response_model=BuyerOut, status_code=201)
def create_buyer(payload: BuyerCreate, db: Session = Depends(get_db)):
    existing = db.scalars(select(User).where(User.mobile == payload.mobile)).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="A user with this mobile number already exists")
    return _save(db, User(role=UserRole.CONSUMER, **payload.model_dump()))


# --- Animals ---

@app.get("/animals", response_model=List[AnimalOut])
def list_animals(db: Session = Depends(get_db)):
    return db.scalars(select(Animal).order_by(Animal.name, Animal.id)).all()


@app.post("/animals", response_model=AnimalOut, status_code=201)
def create_animal(payload: AnimalCreate, db: Session = Depends(get_db)):
    return _save(db, Animal(**payload.model_dump()))


@app.get("/animals/transactions", response_model=List[AnimalTransactionOut])
def list_animal_transactions(db: Session = Depends(get_db)):
    return db.scalars(
        select(AnimalTransaction).order_by(AnimalTransaction.date.desc(), AnimalTransaction.id.desc())
    ).all()


@app.post("/animals/transactions", response_model=AnimalTransactionOut, status_code=201)
def create_animal_transaction(payload: AnimalTransactionCreate, db: Session = Depends(get_db)):
    return _save(db, AnimalTransaction(**payload.model_dump()))


@app.post("/animals/sale", response_model=AnimalTransactionOut, status_code=201)
def create_animal_sale(payload: AnimalTransactionDetails, db: Session = Depends(get_db)):
    return _save(db, AnimalTransaction(type=SALE, **payload.model_dump()))


@app.post("/animals/purchase", response_model=AnimalTransactionOut, status_code=201)
def create_animal_purchase(payload: AnimalTransactionDetails, db: Session = Depends(get_db)):
    return _save(db, AnimalTransaction(type=PURCHASE, **payload.model_dump()))


def _record_animal_transaction(db: Session, animal_id: int, transaction_type: str, status: str,
                               payload: AnimalTransactionDetails):
    """Books a transaction against a registered animal and moves it to the given status."""
    animal = db.get(Animal, animal_id)
    if animal is None:
        raise HTTPException(status_code=404, detail="Animal not found")

    details = payload.model_dump()
    details["animal_name"] = details["animal_name"] or animal.name
    details["animal_type"] = details["animal_type"] or animal.type
    details["breed"] = details["breed"] or animal.breed
    transaction = AnimalTransaction(animal_id=animal.id, type=transaction_type, **details)
    animal.status = status
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    logger.info("Animal %d %s recorded; status is now %s", animal.id, transaction_type, status)
    return transaction


@app.post("/animals/{animal_id}/purchase", response_model=AnimalTransactionOut, status_code=201)
def purchase_animal(animal_id: int, payload: AnimalTransactionDetails, db: Session = Depends(get_db)):
    return _record_animal_transaction(db, animal_id, PURCHASE, ANIMAL_ACTIVE, payload)


@app.post("/animals/{animal_id}/sale", response_model=AnimalTransactionOut, status_code=201)
def sell_animal(animal_id: int, payload: AnimalTransactionDetails, db: Session = Depends(get_db)):
    return _record_animal_transaction(db, animal_id, SALE, ANIMAL_SOLD, payload)


# --- Sellers ---

def _seller_out(seller: Seller) -> SellerOut:
    return SellerOut(
        id=seller.id,
        user_id=seller.user_id,
        name=seller.name or seller.user.name,
        mobile=seller.user.mobile,
        email=seller.user.email,
        quantity=seller.quantity,
        rate=seller.rate,
        created_at=seller.created_at,
        updated_at=seller.updated_at,
    )


@app.get("/sellers", response_model=List[SellerOut])
def list_sellers(db: Session = Depends(get_db)):
    """Lists milk suppliers with the contact details of their user accounts."""
    sellers = db.scalars(select(Seller).options(joinedload(Seller.user)).order_by(Seller.name, Seller.id)).all()
    return [_seller_out(seller) for seller in sellers]


@app.post("/sellers", response_model=SellerOut, status_code=201)
def create_seller(payload: SellerCreate, db: Session = Depends(get_db)):
    """
    Registers a milk supplier.
    - An existing user with the same mobile is linked; otherwise a seller user is created
    """
    user = db.scalars(select(User).where(User.mobile == payload.mobile)).first()
    if user is None:
        user = User(name=payload.name, mobile=payload.mobile, email=payload.email, role=UserRole.SELLER)
        db.add(user)
        db.flush()
    elif db.scalars(select(Seller).where(Seller.user_id == user.id)).first() is not None:
        raise HTTPException(status_code=409, detail="A seller with this mobile number already exists")

    seller = _save(db, Seller(user_id=user.id, name=payload.name, quantity=payload.quantity, rate=payload.rate))
    return _seller_out(seller)


# --- Reports ---

@app.get("/reports/dashboard-summary", response_model=DashboardSummary)
def get_dashboard_summary(
    trend_period: Optional[str] = Query(None, alias="trendPeriod"),
    buyer_mobile: Optional[str] = Query(None, alias="buyerMobile"),
    readers: ReportReaders = Depends(get_readers),
    now: datetime = Depends(get_now),
):
    """
    Returns today's and month-to-date figures, buyer consumption ranking and a sales trend.
    - **trendPeriod**: weekly (default), monthly or yearly; anything else means weekly
    - **buyerMobile**: optional buyer to drill down into
    """
    try:
        return compose_dashboard_summary(readers, trend_period=trend_period, buyer_mobile=buyer_mobile, now=now)
    except Exception as e:
        logger.exception("Failed to fetch dashboard summary")
        raise HTTPException(status_code=500, detail=f"Failed to fetch dashboard summary: {e}")


@app.get("/reports/buyer-consumption/export")
def export_buyer_consumption(
    year: Optional[str] = None,
    month: Optional[str] = None,
    buyer_mobile: Optional[str] = Query(None, alias="buyerMobile"),
    readers: ReportReaders = Depends(get_readers),
    now: datetime = Depends(get_now),
):
    """
    Downloads a month of sale transactions as CSV.
    - **year**, **month**: default to the current month when missing or invalid
    - **buyerMobile**: optional buyer filter
    """
    try:
        export = build_buyer_consumption_csv(readers, year=year, month=month, buyer_mobile=buyer_mobile, now=now)
    except Exception as e:
        logger.exception("Failed to export buyer purchases")
        raise HTTPException(status_code=500, detail=f"Failed to export buyer purchases: {e}")

    return Response(
        content=export.content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@app.get("/reports/profit-loss", response_model=ProfitLossReport)
def get_profit_loss(
    period: Optional[str] = None,
    readers: ReportReaders = Depends(get_readers),
    now: datetime = Depends(get_now),
):
    try:
        return compute_profit_loss(readers, period=period, now=now)
    except Exception as e:
        logger.exception("Failed to compute profit/loss")
        raise HTTPException(status_code=500, detail=f"Failed to compute profit/loss: {e}")


# --- Bulk import ---

@app.post("/upload")
async def upload_csv(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    engine: Engine = Depends(get_engine)
):
    """
    Uploads a milk ledger CSV and imports it in the background.
    - **file**: CSV with type, date, quantity, price_per_liter and total_amount columns
    """
    # 1. Validate the file type
    if not file.filename.endswith('.csv'):
        raise HTTPException(status_code=400, detail="Invalid file type. Please upload a CSV.")

    try:
        contents = await file.read()

        # 2. Validate CSV format before processing
        processing.validate_csv_format(contents)

        # 3. Keep the upload on disk so the import does not hold it in memory
        upload_dir = Path(settings.UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)
        file_path = upload_dir / f"upload_{uuid.uuid4()}.csv"
        file_path.write_bytes(contents)

        # 4. Add the heavy processing function to run in the background
        background_tasks.add_task(processing.import_uploaded_csv, str(file_path), engine)

        return {
            "message": f"File '{file.filename}' accepted and is being processed in the background."
        }

    except ValueError as e:
        # Handle CSV validation errors
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"An error occurred during file processing: {e}")
