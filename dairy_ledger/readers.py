# dairy_ledger/readers.py
"""
Read-side collaborators for the reporting engine.

The engine only depends on the abstract readers below, so reports can be
computed over any store. The SQL implementations read through a SQLAlchemy
session that belongs to the current request.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import AnimalTransaction, CharaPurchase, MilkTransaction, User, UserRole


class TransactionReader(ABC):
    @abstractmethod
    def find_transactions(
        self,
        transaction_type: Optional[str],
        start: datetime,
        end: datetime,
        buyer_mobile: Optional[str] = None,
    ) -> List[MilkTransaction]:
        """Milk transactions of a type with start <= date <= end, oldest first."""


class CharaPurchaseReader(ABC):
    @abstractmethod
    def find_purchases(self, start: datetime, end: datetime) -> List[CharaPurchase]:
        ...


class UserReader(ABC):
    @abstractmethod
    def find_by_mobile(self, mobile: str) -> Optional[User]:
        ...

    @abstractmethod
    def find_by_mobiles(self, mobiles: Iterable[str], consumers_only: bool = True) -> List[User]:
        """Users with any of the mobiles; by default only consumers (buyers)."""


class AnimalTransactionReader(ABC):
    @abstractmethod
    def find_transactions(self, transaction_type: str, start: datetime, end: datetime) -> List[AnimalTransaction]:
        ...


class SqlTransactionReader(TransactionReader):
    def __init__(self, session: Session):
        self.session = session

    def find_transactions(self, transaction_type, start, end, buyer_mobile=None):
        query = select(MilkTransaction).where(
            MilkTransaction.date >= start,
            MilkTransaction.date <= end,
        )
        if transaction_type:
            query = query.where(MilkTransaction.type == transaction_type)
        if buyer_mobile:
            query = query.where(func.trim(func.coalesce(MilkTransaction.buyer_phone, "")) == buyer_mobile)
        query = query.order_by(MilkTransaction.date, MilkTransaction.id)
        return list(self.session.scalars(query))


class SqlCharaPurchaseReader(CharaPurchaseReader):
    def __init__(self, session: Session):
        self.session = session

    def find_purchases(self, start, end):
        query = (
            select(CharaPurchase)
            .where(CharaPurchase.date >= start, CharaPurchase.date <= end)
            .order_by(CharaPurchase.date, CharaPurchase.id)
        )
        return list(self.session.scalars(query))


class SqlUserReader(UserReader):
    """Looks up registered users by mobile number."""

    def __init__(self, session: Session):
        self.session = session

    def find_by_mobile(self, mobile):
        query = select(User).where(User.mobile == mobile, User.role == UserRole.CONSUMER)
        return self.session.scalars(query).first()

    def find_by_mobiles(self, mobiles, consumers_only=True):
        mobiles = sorted(set(mobiles))
        if not mobiles:
            return []
        query = select(User).where(User.mobile.in_(mobiles))
        if consumers_only:
            query = query.where(User.role == UserRole.CONSUMER)
        return list(self.session.scalars(query))


class SqlAnimalTransactionReader(AnimalTransactionReader):
    def __init__(self, session: Session):
        self.session = session

    def find_transactions(self, transaction_type, start, end):
        query = (
            select(AnimalTransaction)
            .where(
                AnimalTransaction.type == transaction_type,
                AnimalTransaction.date >= start,
                AnimalTransaction.date <= end,
            )
            .order_by(AnimalTransaction.date, AnimalTransaction.id)
        )
        return list(self.session.scalars(query))


@dataclass
class ReportReaders:
    transactions: TransactionReader
    chara_purchases: CharaPurchaseReader
    users: UserReader
    animal_transactions: AnimalTransactionReader

    @classmethod
    def from_session(cls, session: Session) -> "ReportReaders":
        return cls(
            transactions=SqlTransactionReader(session),
            chara_purchases=SqlCharaPurchaseReader(session),
            users=SqlUserReader(session),
            animal_transactions=SqlAnimalTransactionReader(session),
        )
