"""Data models for the offer store."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

HASH_SIZE = 32
ZERO_HASH = bytes(HASH_SIZE)


class TableName(str, Enum):
    """Tables reported to observers."""

    COUNTRIES = "countries"
    CURRENCIES = "currencies"
    PAYMENT_METHODS = "paymentMethods"
    OFFERS_SELL = "offersSell"
    OFFERS_BUY = "offersBuy"
    MY_OFFERS = "myOffers"
    FILTER_LIST = "filterList"


class TableOperation(str, Enum):
    READ = "read"
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"


class OperationStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


class OffersPeriod(str, Enum):
    """Restriction on timeModification used by reconciliation queries."""

    ALL = "all"
    BEFORE = "before"
    AFTER = "after"


class OfferType(IntEnum):
    BUY = 0
    SELL = 1


class OfferStatus(IntEnum):
    ACTIVE = 0
    DRAFT = 1
    EXPIRED = 2
    CANCELLED = 3
    SUSPENDED = 4
    UNCONFIRMED = 5
    ACCEPTED = 6


# --- Identifiers ---

def hash_to_hex(value: bytes) -> str:
    """Render a 256-bit identifier the way the wallet displays uint256 values.

    The byte string is little-endian, so the hex text is its reverse.
    """
    if len(value) != HASH_SIZE:
        raise ValueError(f"expected {HASH_SIZE} bytes, got {len(value)}")
    return value[::-1].hex()


def hash_from_hex(text: Optional[str]) -> bytes:
    """Parse hex text into a 32-byte identifier.

    Accepts an optional 0x prefix and short input (high bytes are zero-filled).
    None or empty text parses to the zero identifier.
    """
    if not text:
        return ZERO_HASH
    text = text.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if len(text) > HASH_SIZE * 2:
        raise ValueError(f"identifier longer than {HASH_SIZE} bytes: {text!r}")
    raw = bytes.fromhex(text.rjust(HASH_SIZE * 2, "0"))
    return raw[::-1]


# --- Offers ---

@dataclass
class Offer:
    """A broadcast sell/buy offer. Zero-valued by default."""

    id_transaction: bytes = ZERO_HASH
    hash: bytes = ZERO_HASH
    pub_key: str = ""
    country_iso: str = ""
    currency_iso: str = ""
    payment_method: int = 0
    price: int = 0
    min_amount: int = 0
    time_create: int = 0
    time_to_expiration: int = 0
    time_modification: int = 0
    short_info: str = ""
    details: str = ""
    editing_version: int = 0
    edit_sign: str = ""

    def is_empty(self) -> bool:
        return self.hash == ZERO_HASH and self.id_transaction == ZERO_HASH

    def to_params(self) -> Dict[str, Any]:
        """Named statement parameters for the offer columns."""
        return {
            "idTransaction": hash_to_hex(self.id_transaction),
            "hash": hash_to_hex(self.hash),
            "pubKey": self.pub_key,
            "countryIso": self.country_iso,
            "currencyIso": self.currency_iso,
            "paymentMethod": int(self.payment_method),
            "price": int(self.price),
            "minAmount": int(self.min_amount),
            "timeCreate": int(self.time_create),
            "timeToExpiration": int(self.time_to_expiration),
            "timeModification": int(self.time_modification),
            "shortInfo": self.short_info,
            "details": self.details,
            "editingVersion": int(self.editing_version),
            "editsign": self.edit_sign,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> Offer:
        return cls(
            id_transaction=hash_from_hex(row.get("idTransaction")),
            hash=hash_from_hex(row.get("hash")),
            pub_key=row.get("pubKey") or "",
            country_iso=row.get("countryIso") or "",
            currency_iso=row.get("currencyIso") or "",
            payment_method=row.get("paymentMethod") or 0,
            price=row.get("price") or 0,
            min_amount=row.get("minAmount") or 0,
            time_create=row.get("timeCreate") or 0,
            time_to_expiration=row.get("timeToExpiration") or 0,
            time_modification=row.get("timeModification") or 0,
            short_info=row.get("shortInfo") or "",
            details=row.get("details") or "",
            editing_version=row.get("editingVersion") or 0,
            edit_sign=row.get("editsign") or "",
        )


@dataclass
class MyOffer:
    """An offer owned by this wallet: the broadcast fields plus direction and lifecycle."""

    offer: Offer = field(default_factory=Offer)
    type: OfferType = OfferType.BUY
    status: OfferStatus = OfferStatus.ACTIVE

    @property
    def hash(self) -> bytes:
        return self.offer.hash

    @property
    def id_transaction(self) -> bytes:
        return self.offer.id_transaction

    def is_empty(self) -> bool:
        return self.offer.is_empty()

    def with_offer(self, **changes: Any) -> MyOffer:
        """Copy with some offer fields replaced."""
        return MyOffer(offer=replace(self.offer, **changes), type=self.type, status=self.status)

    def to_params(self) -> Dict[str, Any]:
        """Named statement parameters. Raises ValueError for an unknown type or status."""
        params = self.offer.to_params()
        params["type"] = int(OfferType(self.type))
        params["status"] = int(OfferStatus(self.status))
        return params

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> MyOffer:
        return cls(
            offer=Offer.from_row(row),
            type=OfferType(row.get("type") or 0),
            status=OfferStatus(row.get("status") or 0),
        )


@dataclass
class OfferFilter:
    """Optional equality predicates for listing and counting offers.

    Empty strings, a zero payment method and None leave a predicate out.
    offer_type and status only apply to myOffers.
    """

    country_iso: str = ""
    currency_iso: str = ""
    payment_method: int = 0
    offer_type: Optional[OfferType] = None
    status: Optional[OfferStatus] = None


# --- Reference data ---

@dataclass
class CountryInfo:
    iso: str
    name: str = ""
    enabled: bool = False
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> CountryInfo:
        return cls(
            iso=row["iso"],
            name=row.get("name") or "",
            enabled=bool(row.get("enabled")),
            sort_order=row.get("sortOrder") or 0,
        )


@dataclass
class CurrencyInfo:
    iso: str
    name: str = ""
    symbol: str = ""
    enabled: bool = False
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> CurrencyInfo:
        return cls(
            iso=row["iso"],
            name=row.get("name") or "",
            symbol=row.get("symbol") or "",
            enabled=bool(row.get("enabled")),
            sort_order=row.get("sortOrder") or 0,
        )


@dataclass
class PaymentMethodInfo:
    type: int
    name: str = ""
    description: str = ""
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> PaymentMethodInfo:
        description = row.get("description") or ""
        if isinstance(description, bytes):
            description = description.decode("utf-8")
        return cls(
            type=row["type"],
            name=row.get("name") or "",
            description=description,
            sort_order=row.get("sortOrder") or 0,
        )
