import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable

from tradeledger.services.records import (
    ZERO,
    Basis,
    CostMode,
    MoneyTransaction,
    ProductInfo,
    StockSnapshot,
    TransactionKind,
    TransactionLine,
)

logger = logging.getLogger(__name__)


class CostSource(str, Enum):
    WAC = "wac"
    LATEST = "latest"
    CROSS_BASIS = "cross_basis"
    DEFAULT = "default"
    NONE = "none"


@dataclass(frozen=True)
class PricedLine:
    date: datetime
    transaction_id: int
    position: int
    line: TransactionLine


@dataclass(frozen=True)
class PurchaseAggregate:
    quantity: Decimal = ZERO
    weight: Decimal = ZERO
    value: Decimal = ZERO
    lines: int = 0

    def per_unit(self, basis: Basis) -> Decimal | None:
        measure = self.quantity if basis is Basis.QUANTITY else self.weight
        if measure > 0 and self.value > 0:
            return self.value / measure
        return None

    @property
    def weight_per_unit(self) -> Decimal | None:
        if self.quantity > 0 and self.weight > 0:
            return self.weight / self.quantity
        return None


@dataclass(frozen=True)
class CostQuote:
    per_quantity: Decimal = ZERO
    per_weight: Decimal = ZERO
    source: CostSource = CostSource.NONE

    def for_basis(self, basis) -> Decimal:
        return self.per_quantity if Basis.parse(basis) is Basis.QUANTITY else self.per_weight


def line_value(line: TransactionLine) -> Decimal:
    """Explicit value when positive, else rate times the line's rate basis measure."""
    if line.value is not None and line.value > 0:
        return line.value
    return line.rate * line.measure(line.rate_basis)


def _line_matches(line: TransactionLine, store: str | None, product: str, lot: str | None) -> bool:
    if store is not None and line.store != store:
        return False
    if line.product != product:
        return False
    if lot is not None and (line.lot or None) != lot:
        return False
    return True


def matching_lines(
    purchases: Iterable[MoneyTransaction],
    store: str | None,
    product: str,
    lot: str | None = None,
    as_of: datetime | None = None,
) -> list[PricedLine]:
    found: list[PricedLine] = []
    for txn in purchases:
        if txn.kind is not TransactionKind.PURCHASE:
            continue
        if as_of is not None and txn.date > as_of:
            continue
        for position, line in enumerate(txn.lines):
            if _line_matches(line, store, product, lot):
                found.append(PricedLine(date=txn.date, transaction_id=txn.id, position=position, line=line))
    found.sort(key=lambda priced: (priced.date, priced.transaction_id, priced.position))
    return found


def aggregate_purchases(lines: Iterable[TransactionLine]) -> PurchaseAggregate:
    quantity = ZERO
    weight = ZERO
    value = ZERO
    count = 0
    for line in lines:
        quantity += line.quantity
        weight += line.weight
        value += line_value(line)
        count += 1
    return PurchaseAggregate(quantity=quantity, weight=weight, value=value, lines=count)


def snapshot_weight_per_unit(
    snapshots: Iterable[StockSnapshot],
    store: str | None,
    product: str,
    lot: str | None = None,
) -> Decimal | None:
    quantity = ZERO
    weight = ZERO
    for snapshot in snapshots:
        if store is not None and snapshot.store != store:
            continue
        if snapshot.product != product:
            continue
        if lot is not None and (snapshot.lot or None) != lot:
            continue
        quantity += snapshot.quantity
        weight += snapshot.weight
    if quantity > 0 and weight > 0:
        return weight / quantity
    return None


def quote_cost(
    purchases: Iterable[MoneyTransaction],
    store: str | None,
    product: str,
    *,
    lot: str | None = None,
    as_of: datetime | None = None,
    mode=CostMode.WAC,
    snapshot_ratio: Decimal | None = None,
    product_info: ProductInfo | None = None,
) -> CostQuote:
    mode = CostMode.parse(mode)
    candidates = matching_lines(purchases, store, product, lot, as_of)
    if mode is CostMode.WAC:
        aggregate = aggregate_purchases(priced.line for priced in candidates)
        source = CostSource.WAC
    else:
        aggregate = aggregate_purchases([candidates[-1].line]) if candidates else PurchaseAggregate()
        source = CostSource.LATEST

    per_quantity = aggregate.per_unit(Basis.QUANTITY)
    per_weight = aggregate.per_unit(Basis.WEIGHT)
    if per_quantity is not None and per_weight is not None:
        return CostQuote(per_quantity=per_quantity, per_weight=per_weight, source=source)

    # The aggregate ratio is only reachable for unpriced history (value 0),
    # where it converts the product default cost to a per kg figure.
    ratio = next(
        (
            candidate
            for candidate in (
                aggregate.weight_per_unit,
                snapshot_ratio,
                product_info.unit_weight if product_info is not None else None,
            )
            if candidate is not None and candidate > 0
        ),
        None,
    )

    if per_quantity is None and per_weight is None:
        default = product_info.default_cost_per_quantity if product_info is not None else ZERO
        if default > 0:
            return CostQuote(
                per_quantity=default,
                per_weight=default / ratio if ratio is not None else ZERO,
                source=CostSource.DEFAULT,
            )
        logger.info("No cost data for store=%r product=%r lot=%r; unit cost is 0", store, product, lot)
        return CostQuote()

    if ratio is None:
        logger.info(
            "Cost for store=%r product=%r covers one basis only and no weight ratio is known",
            store,
            product,
        )
        return CostQuote(per_quantity=per_quantity or ZERO, per_weight=per_weight or ZERO, source=source)

    if per_quantity is None:
        per_quantity = per_weight * ratio
    else:
        per_weight = per_quantity / ratio
    return CostQuote(per_quantity=per_quantity, per_weight=per_weight, source=CostSource.CROSS_BASIS)


def unit_cost(
    purchases: Iterable[MoneyTransaction],
    store: str | None,
    product: str,
    *,
    lot: str | None = None,
    as_of: datetime | None = None,
    mode=CostMode.WAC,
    basis=Basis.QUANTITY,
    snapshot_ratio: Decimal | None = None,
    product_info: ProductInfo | None = None,
) -> Decimal:
    quote = quote_cost(
        purchases,
        store,
        product,
        lot=lot,
        as_of=as_of,
        mode=mode,
        snapshot_ratio=snapshot_ratio,
        product_info=product_info,
    )
    return quote.for_basis(basis)
