import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Union

from tradeledger.services.records import (
    ZERO,
    InventoryMovement,
    MovementSource,
    ProductInfo,
    StockSnapshot,
    StoreInfo,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_PRODUCT = "-"


@dataclass(frozen=True)
class Derived:
    quantity: Decimal
    weight: Decimal

    source = "derived"


@dataclass(frozen=True)
class Explicit:
    quantity: Decimal
    weight: Decimal

    source = "explicit"


Position = Union[Derived, Explicit]


def settle(derived: Derived, explicit: Explicit | None) -> Position:
    return explicit if explicit is not None else derived


@dataclass
class _Tally:
    purchased_quantity: Decimal = ZERO
    purchased_weight: Decimal = ZERO
    sold_quantity: Decimal = ZERO
    sold_weight: Decimal = ZERO
    consumed_quantity: Decimal = ZERO
    consumed_weight: Decimal = ZERO
    produced_quantity: Decimal = ZERO
    produced_weight: Decimal = ZERO

    def add(self, movement: InventoryMovement) -> None:
        if movement.source is MovementSource.PURCHASE:
            self.purchased_quantity += movement.quantity
            self.purchased_weight += movement.weight
        elif movement.source is MovementSource.SALE:
            self.sold_quantity += movement.quantity
            self.sold_weight += movement.weight
        elif movement.source is MovementSource.PRODUCTION_OUT:
            self.consumed_quantity += movement.quantity
            self.consumed_weight += movement.weight
        else:
            self.produced_quantity += movement.quantity
            self.produced_weight += movement.weight

    @property
    def derived(self) -> Derived:
        return Derived(
            quantity=self.purchased_quantity - self.sold_quantity - self.consumed_quantity + self.produced_quantity,
            weight=self.purchased_weight - self.sold_weight - self.consumed_weight + self.produced_weight,
        )


@dataclass(frozen=True)
class StockRow:
    store: str
    product: str
    lot: str | None
    current_quantity: Decimal
    current_weight: Decimal
    derived_quantity: Decimal
    derived_weight: Decimal
    source: str
    purchased_quantity: Decimal = ZERO
    purchased_weight: Decimal = ZERO
    sold_quantity: Decimal = ZERO
    sold_weight: Decimal = ZERO
    consumed_quantity: Decimal = ZERO
    consumed_weight: Decimal = ZERO
    produced_quantity: Decimal = ZERO
    produced_weight: Decimal = ZERO
    description: str = ""
    category: str = ""
    min_stock_level: Decimal = ZERO

    @property
    def below_minimum(self) -> bool:
        return self.min_stock_level > 0 and self.current_quantity < self.min_stock_level


def _key(store: str, product: str, lot: str | None, by_lot: bool) -> tuple[str, str, str | None]:
    return (store, product, (lot or None) if by_lot else None)


def reconcile_stock(
    movements: Iterable[InventoryMovement],
    snapshots: Iterable[StockSnapshot],
    stores: Iterable[StoreInfo] = (),
    products: Iterable[ProductInfo] = (),
    *,
    store: str | None = None,
    by_lot: bool = False,
) -> list[StockRow]:
    tallies: dict[tuple, _Tally] = {}
    for movement in movements:
        if store is not None and movement.store != store:
            continue
        key = _key(movement.store, movement.product, movement.lot, by_lot)
        tallies.setdefault(key, _Tally()).add(movement)

    explicit: dict[tuple, Explicit] = {}
    for snapshot in snapshots:
        if store is not None and snapshot.store != store:
            continue
        key = _key(snapshot.store, snapshot.product, snapshot.lot, by_lot)
        seen = explicit.get(key)
        explicit[key] = Explicit(
            quantity=(seen.quantity if seen else ZERO) + snapshot.quantity,
            weight=(seen.weight if seen else ZERO) + snapshot.weight,
        )

    catalog = {product.code: product for product in products}
    rows: list[StockRow] = []
    for key in set(tallies) | set(explicit):
        store_name, product_code, lot = key
        tally = tallies.get(key, _Tally())
        derived = tally.derived
        position = settle(derived, explicit.get(key))
        if isinstance(position, Derived) and (derived.quantity < 0 or derived.weight < 0):
            logger.warning(
                "Negative derived stock for store=%r product=%r lot=%r: quantity=%s weight=%s",
                store_name,
                product_code,
                lot,
                derived.quantity,
                derived.weight,
            )
        info = catalog.get(product_code)
        rows.append(
            StockRow(
                store=store_name,
                product=product_code,
                lot=lot,
                current_quantity=max(position.quantity, ZERO),
                current_weight=max(position.weight, ZERO),
                derived_quantity=derived.quantity,
                derived_weight=derived.weight,
                source=position.source,
                purchased_quantity=tally.purchased_quantity,
                purchased_weight=tally.purchased_weight,
                sold_quantity=tally.sold_quantity,
                sold_weight=tally.sold_weight,
                consumed_quantity=tally.consumed_quantity,
                consumed_weight=tally.consumed_weight,
                produced_quantity=tally.produced_quantity,
                produced_weight=tally.produced_weight,
                description=info.description if info else "",
                category=info.category if info else "",
                min_stock_level=info.min_stock_level if info else ZERO,
            )
        )

    observed = {row.store for row in rows}
    for info in stores:
        if not info.is_active or info.name in observed:
            continue
        if store is not None and info.name != store:
            continue
        rows.append(
            StockRow(
                store=info.name,
                product=PLACEHOLDER_PRODUCT,
                lot=None,
                current_quantity=ZERO,
                current_weight=ZERO,
                derived_quantity=ZERO,
                derived_weight=ZERO,
                source="placeholder",
            )
        )

    rows.sort(key=lambda row: (row.store, row.product, row.lot or ""))
    return rows
