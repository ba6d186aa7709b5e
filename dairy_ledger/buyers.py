# dairy_ledger/buyers.py
"""
Buyer resolution against the user registry.

A transaction only carries the buyer's phone number. Resolving it yields
either a `ResolvedBuyer` (a user with that mobile exists) or an
`UnknownBuyer`, which still carries a display name so reports never drop
rows for unregistered buyers.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

from .config import settings
from .readers import UserReader


@dataclass(frozen=True)
class ResolvedBuyer:
    mobile: str
    name: str
    user_id: Optional[int] = None

    @property
    def is_known(self) -> bool:
        return True


@dataclass(frozen=True)
class UnknownBuyer:
    mobile: str

    @property
    def name(self) -> str:
        return settings.UNKNOWN_BUYER_NAME

    @property
    def user_id(self) -> None:
        return None

    @property
    def is_known(self) -> bool:
        return False


Buyer = Union[ResolvedBuyer, UnknownBuyer]


def normalize_mobile(mobile) -> Optional[str]:
    """Trims a phone number; blank or missing numbers become None."""
    if mobile is None:
        return None
    trimmed = str(mobile).strip()
    return trimmed or None


def resolve_buyer(users: UserReader, mobile: str) -> Buyer:
    user = users.find_by_mobile(mobile)
    if user is None:
        return UnknownBuyer(mobile=mobile)
    return ResolvedBuyer(mobile=mobile, name=user.name, user_id=user.id)


def resolve_buyers(users: UserReader, mobiles: Iterable[str], consumers_only: bool = True) -> Dict[str, Buyer]:
    """
    Batch variant of resolve_buyer: one registry lookup for all mobiles.

    With consumers_only=False any registered user lends its name, which is
    how the purchase export labels rows.
    """
    mobiles = list(mobiles)
    found = {user.mobile: user for user in users.find_by_mobiles(mobiles, consumers_only=consumers_only)}
    resolved: Dict[str, Buyer] = {}
    for mobile in mobiles:
        user = found.get(mobile)
        if user is None:
            resolved[mobile] = UnknownBuyer(mobile=mobile)
        else:
            resolved[mobile] = ResolvedBuyer(mobile=mobile, name=user.name, user_id=user.id)
    return resolved
