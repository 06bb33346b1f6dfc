from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from tradeledger.core.errors import ValidationFailure

ZERO = Decimal("0")
ALL_PARTIES = "all"


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def whole(value: Decimal) -> int:
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def four_places(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def _parse_choice(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    raw = str(value or "").strip().lower()
    for member in enum_cls:
        if raw in {member.value.lower(), member.name.lower()}:
            return member
    choices = ", ".join(member.value for member in enum_cls)
    raise ValidationFailure(f"Unknown {label}: {value!r} (expected one of: {choices})")


class PartyType(str, Enum):
    CUSTOMER = "Customer"
    SUPPLIER = "Supplier"

    @classmethod
    def parse(cls, value) -> "PartyType":
        return _parse_choice(cls, value, "party type")


class TransactionKind(str, Enum):
    PURCHASE = "Purchase"
    SALE = "Sale"
    PAYMENT = "Payment"
    RECEIPT = "Receipt"


class Basis(str, Enum):
    QUANTITY = "Quantity"
    WEIGHT = "Weight"

    @classmethod
    def parse(cls, value) -> "Basis":
        if str(value or "").strip().lower() in {"qty", "pkt"}:
            return cls.QUANTITY
        if str(value or "").strip().lower() == "kg":
            return cls.WEIGHT
        return _parse_choice(cls, value, "cost basis")

    @property
    def other(self) -> "Basis":
        return Basis.WEIGHT if self is Basis.QUANTITY else Basis.QUANTITY


class CostMode(str, Enum):
    WAC = "wac"
    LATEST = "latest"

    @classmethod
    def parse(cls, value) -> "CostMode":
        return _parse_choice(cls, value, "cost mode")


class MovementSource(str, Enum):
    PURCHASE = "Purchase"
    SALE = "Sale"
    PRODUCTION_IN = "ProductionIn"
    PRODUCTION_OUT = "ProductionOut"


@dataclass(frozen=True)
class TransactionLine:
    store: str
    product: str
    lot: str | None = None
    quantity: Decimal = ZERO
    weight: Decimal = ZERO
    rate: Decimal = ZERO
    rate_basis: Basis = Basis.WEIGHT
    value: Decimal | None = None
    description: str = ""

    def measure(self, basis: Basis) -> Decimal:
        return self.quantity if basis is Basis.QUANTITY else self.weight


@dataclass(frozen=True)
class MoneyTransaction:
    kind: TransactionKind
    id: int
    date: datetime
    party_ref: str = ""
    amount: Decimal = ZERO
    number: str = ""
    party_type: PartyType | None = None
    mode: str | None = None
    payment_type: str | None = None
    received: Decimal = ZERO
    notes: str | None = None
    lines: tuple[TransactionLine, ...] = ()

    @property
    def counterparty_type(self) -> PartyType | None:
        if self.kind is TransactionKind.SALE:
            return PartyType.CUSTOMER
        if self.kind is TransactionKind.PURCHASE:
            return PartyType.SUPPLIER
        return self.party_type

    @property
    def is_cash_sale(self) -> bool:
        return self.kind is TransactionKind.SALE and (self.payment_type or "").strip().lower() == "cash"

    def has_mode(self, *modes: str) -> bool:
        wanted = {mode.lower() for mode in modes}
        return (self.mode or "").strip().lower() in wanted


@dataclass(frozen=True)
class InventoryMovement:
    store: str
    product: str
    lot: str | None
    quantity: Decimal
    weight: Decimal
    source: MovementSource
    date: datetime | None = None


@dataclass(frozen=True)
class StockSnapshot:
    store: str
    product: str
    lot: str | None = None
    quantity: Decimal = ZERO
    weight: Decimal = ZERO

    @property
    def weight_per_unit(self) -> Decimal | None:
        if self.quantity > 0 and self.weight > 0:
            return self.weight / self.quantity
        return None


@dataclass(frozen=True)
class PartyRecord:
    id: str
    party_type: PartyType
    code: str | None = None
    person: str | None = None
    description: str | None = None
    phone: str | None = None
    mobile: str | None = None


@dataclass(frozen=True)
class ProductInfo:
    code: str
    description: str = ""
    category: str = ""
    kind: str = "Reel"
    length: Decimal = ZERO
    width: Decimal = ZERO
    grams: Decimal = ZERO
    default_cost_per_quantity: Decimal = ZERO
    min_stock_level: Decimal = ZERO
    is_active: bool = True

    @property
    def unit_weight(self) -> Decimal | None:
        if not (self.length > 0 and self.width > 0 and self.grams > 0):
            return None
        weight = self.length * self.width * self.grams
        if self.kind.strip().lower() == "board":
            weight = weight / Decimal("15500")
        return weight


@dataclass(frozen=True)
class StoreInfo:
    name: str
    is_active: bool = True
    description: str = ""


@dataclass(frozen=True)
class DateRange:
    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValidationFailure(
                f"Invalid date range: start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    @classmethod
    def from_dates(cls, date_from: date | None = None, date_to: date | None = None) -> "DateRange":
        start = None
        end = None
        if date_from is not None:
            start = date_from if isinstance(date_from, datetime) else datetime.combine(date_from, time.min)
        if date_to is not None:
            end = date_to if isinstance(date_to, datetime) else datetime.combine(date_to, time.max)
        return cls(start=start, end=end)

    @classmethod
    def until(cls, as_of: date | None) -> "DateRange":
        return cls.from_dates(None, as_of)

    def is_before_start(self, moment: datetime) -> bool:
        return self.start is not None and moment < self.start

    def is_after_end(self, moment: datetime) -> bool:
        return self.end is not None and moment > self.end

    def contains(self, moment: datetime) -> bool:
        return not self.is_before_start(moment) and not self.is_after_end(moment)


@dataclass(frozen=True)
class TransactionFilter:
    party_type: PartyType | None = None
    party_aliases: frozenset[str] | None = None
    date_range: DateRange | None = None
    store: str | None = None
    product: str | None = None


@dataclass(frozen=True)
class MovementFilter:
    store: str | None = None
    product: str | None = None
    date_range: DateRange | None = None
