# dairy_ledger/models.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from .database import Base

SALE = "sale"
PURCHASE = "purchase"
TRANSACTION_TYPES = (SALE, PURCHASE)


class UserRole:
    SUPER_ADMIN = 0
    ADMIN = 1
    CONSUMER = 2
    SELLER = 3


class MilkTransaction(Base):
    __tablename__ = "milk_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(16), nullable=False)
    date = Column(DateTime, nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False)
    price_per_liter = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    buyer = Column(String(100))
    buyer_phone = Column(String(20))
    seller = Column(String(100))
    seller_phone = Column(String(20))
    notes = Column(Text)
    fixed_price = Column(Numeric(12, 2))
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    # Report queries always filter by type and date first
    __table_args__ = (
        Index("idx_milk_type_date", "type", "date"),
        Index("idx_milk_buyer_phone", "buyer_phone"),
        Index("idx_milk_seller_phone", "seller_phone"),
    )


class CharaPurchase(Base):
    __tablename__ = "chara_purchases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(DateTime, nullable=False, index=True)
    quantity = Column(Numeric(12, 2), nullable=False)
    price_per_kg = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    supplier = Column(String(100))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class CharaConsumption(Base):
    __tablename__ = "chara_consumptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(DateTime, nullable=False, index=True)
    quantity = Column(Numeric(12, 2), nullable=False)
    animal_name = Column(String(100))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    mobile = Column(String(10), nullable=False, unique=True, index=True)
    email = Column(String(255))
    address = Column(Text)
    role = Column(Integer, nullable=False, default=UserRole.CONSUMER)
    is_active = Column(Boolean, nullable=False, default=True)
    milk_fixed_price = Column(Numeric(12, 2))
    daily_milk_quantity = Column(Numeric(12, 2))
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class AnimalTransaction(Base):
    __tablename__ = "animal_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    animal_id = Column(Integer, ForeignKey("animals.id"))
    type = Column(String(16), nullable=False)
    date = Column(DateTime, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    animal_name = Column(String(100))
    animal_type = Column(String(50))
    breed = Column(String(50))
    gender = Column(String(16))
    buyer = Column(String(100))
    buyer_phone = Column(String(20))
    seller = Column(String(100))
    seller_phone = Column(String(20))
    notes = Column(Text)
    location = Column(String(100))
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_animal_type_date", "type", "date"),
    )


ANIMAL_ACTIVE = "active"
ANIMAL_SOLD = "sold"
ANIMAL_DECEASED = "deceased"
ANIMAL_STATUSES = (ANIMAL_ACTIVE, ANIMAL_SOLD, ANIMAL_DECEASED)


class Animal(Base):
    __tablename__ = "animals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    type = Column(String(50), nullable=False)
    breed = Column(String(50))
    age = Column(Integer)
    purchase_date = Column(DateTime)
    purchase_price = Column(Numeric(12, 2))
    status = Column(String(16), nullable=False, default=ANIMAL_ACTIVE)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class Seller(Base):
    """Milk supplier; contact details live on the linked user."""

    __tablename__ = "sellers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    quantity = Column(Numeric(12, 2))
    rate = Column(Numeric(12, 2))
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    user = relationship(User)
