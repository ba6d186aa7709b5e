# dairy_ledger/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .time_ranges import to_utc


class CamelModel(BaseModel):
    # The mobile client speaks camelCase; Python code uses field names
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _strip_optional(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


OptionalText = Annotated[Optional[str], BeforeValidator(_strip_optional)]
UtcDatetime = Annotated[datetime, AfterValidator(to_utc)]


# --- Ledger requests ---

class MilkTransactionCreate(CamelModel):
    date: UtcDatetime
    quantity: Decimal = Field(..., ge=0)
    price_per_liter: Decimal = Field(..., ge=0)
    total_amount: Decimal = Field(..., ge=0)
    buyer: OptionalText = None
    buyer_phone: OptionalText = None
    seller: OptionalText = None
    seller_phone: OptionalText = None
    notes: OptionalText = None
    fixed_price: Optional[Decimal] = Field(None, ge=0)


class CharaPurchaseCreate(CamelModel):
    date: UtcDatetime
    quantity: Decimal = Field(..., ge=0)
    price_per_kg: Decimal = Field(..., ge=0)
    total_amount: Decimal = Field(..., ge=0)
    supplier: OptionalText = None
    notes: OptionalText = None


class CharaConsumptionCreate(CamelModel):
    date: UtcDatetime
    quantity: Decimal = Field(..., ge=0)
    animal_name: OptionalText = None
    notes: OptionalText = None


class BuyerCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    mobile: str = Field(..., pattern=r"^[0-9]{10}$")
    email: OptionalText = None
    address: OptionalText = None
    milk_fixed_price: Optional[Decimal] = Field(None, ge=0)
    daily_milk_quantity: Optional[Decimal] = Field(None, ge=0)

    @field_validator("name", "mobile", mode="before")
    @classmethod
    def trim_required(cls, value):
        return value.strip() if isinstance(value, str) else value


class AnimalTransactionDetails(CamelModel):
    date: UtcDatetime
    price: Decimal = Field(..., ge=0)
    animal_name: OptionalText = None
    animal_type: OptionalText = None
    breed: OptionalText = None
    gender: OptionalText = None
    buyer: OptionalText = None
    buyer_phone: OptionalText = None
    seller: OptionalText = None
    seller_phone: OptionalText = None
    notes: OptionalText = None
    location: OptionalText = None


class AnimalTransactionCreate(AnimalTransactionDetails):
    type: str = Field(..., pattern=r"^(sale|purchase)$")


class AnimalCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)
    breed: OptionalText = None
    age: Optional[int] = Field(None, ge=0)
    purchase_date: Optional[UtcDatetime] = None
    purchase_price: Optional[Decimal] = Field(None, ge=0)
    status: str = Field("active", pattern=r"^(active|sold|deceased)$")

    @field_validator("name", "type", mode="before")
    @classmethod
    def trim_required(cls, value):
        return value.strip() if isinstance(value, str) else value


class SellerCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    mobile: str = Field(..., pattern=r"^[0-9]{10}$")
    email: OptionalText = None
    quantity: Optional[Decimal] = Field(None, ge=0)
    rate: Optional[Decimal] = Field(None, ge=0)

    @field_validator("name", "mobile", mode="before")
    @classmethod
    def trim_required(cls, value):
        return value.strip() if isinstance(value, str) else value


# --- Ledger responses ---

class MilkTransactionOut(CamelModel):
    id: int
    type: str
    date: datetime
    quantity: float
    price_per_liter: float
    total_amount: float
    buyer: Optional[str] = None
    buyer_phone: Optional[str] = None
    seller: Optional[str] = None
    seller_phone: Optional[str] = None
    notes: Optional[str] = None
    fixed_price: Optional[float] = None


class CharaPurchaseOut(CamelModel):
    id: int
    date: datetime
    quantity: float
    price_per_kg: float
    total_amount: float
    supplier: Optional[str] = None
    notes: Optional[str] = None


class CharaConsumptionOut(CamelModel):
    id: int
    date: datetime
    quantity: float
    animal_name: Optional[str] = None
    notes: Optional[str] = None


class BuyerOut(CamelModel):
    id: int
    name: str
    mobile: str
    email: Optional[str] = None
    address: Optional[str] = None
    milk_fixed_price: Optional[float] = None
    daily_milk_quantity: Optional[float] = None


class AnimalTransactionOut(CamelModel):
    id: int
    animal_id: Optional[int] = None
    type: str
    date: datetime
    price: float
    animal_name: Optional[str] = None
    animal_type: Optional[str] = None
    breed: Optional[str] = None
    gender: Optional[str] = None
    buyer: Optional[str] = None
    buyer_phone: Optional[str] = None
    seller: Optional[str] = None
    seller_phone: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None


class AnimalOut(CamelModel):
    id: int
    name: str
    type: str
    breed: Optional[str] = None
    age: Optional[int] = None
    purchase_date: Optional[datetime] = None
    purchase_price: Optional[float] = None
    status: str


class SellerOut(CamelModel):
    id: int
    user_id: int
    name: str
    mobile: Optional[str] = None
    email: Optional[str] = None
    quantity: Optional[float] = None
    rate: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Reports ---

class SalesStat(CamelModel):
    quantity: float = 0
    amount: float = 0
    transactions: int = 0


class ExpenseBreakdown(CamelModel):
    chara_purchases: float = 0
    milk_purchases: float = 0


class TrendPoint(CamelModel):
    date: str
    label: str
    total_quantity: float = 0
    total_amount: float = 0


class BuyerConsumption(CamelModel):
    user_id: Optional[int] = None
    name: str
    mobile: str
    total_quantity: float = 0
    total_amount: float = 0
    average_rate: float = 0


class SelectedBuyer(CamelModel):
    user_id: Optional[int] = None
    name: str
    mobile: str
    daily_sales: SalesStat
    monthly_sales: SalesStat
    trend: List[TrendPoint] = []
    average_rate: float = 0


class TrendMetadata(CamelModel):
    period: str
    period_label: str
    unit: str
    length: int
    start_date: str
    end_date: str


class DashboardSummary(CamelModel):
    generated_at: datetime
    daily_expenses: float = 0
    daily_expense_breakdown: ExpenseBreakdown
    daily_sales: SalesStat
    monthly_sales: SalesStat
    user_consumptions: List[BuyerConsumption] = []
    sales_trend: List[TrendPoint] = []
    selected_buyer: Optional[SelectedBuyer] = None
    trend_metadata: TrendMetadata


class ProfitLossDetails(CamelModel):
    milk_sales: float = 0
    animal_sales: float = 0
    milk_purchases: float = 0
    animal_purchases: float = 0
    chara_purchases: float = 0
    other_expenses: float = 0


class ProfitLossReport(CamelModel):
    period: str
    start_date: str
    end_date: str
    total_revenue: float = 0
    total_expenses: float = 0
    profit: float = 0
    loss: float = 0
    details: ProfitLossDetails
