import logging
from contextlib import contextmanager
from typing import Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, selectinload

from tradeledger.core.errors import StoreUnavailableError
from tradeledger.models.catalog import Party, PartyCategory, Product, Store
from tradeledger.models.transactions import (
    Payment,
    Production,
    ProductionMaterial,
    ProductionOutput,
    PurchaseInvoice,
    PurchaseInvoiceItem,
    Receipt,
    SaleInvoice,
    SaleInvoiceItem,
    StockSnapshot as StockSnapshotRow,
)
from tradeledger.services.parties import alias_key, split_composite
from tradeledger.services.records import (
    Basis,
    InventoryMovement,
    MoneyTransaction,
    MovementFilter,
    MovementSource,
    PartyRecord,
    PartyType,
    ProductInfo,
    StockSnapshot,
    StoreInfo,
    TransactionFilter,
    TransactionKind,
    TransactionLine,
    to_decimal,
)

logger = logging.getLogger(__name__)


class TransactionStore(Protocol):
    def list_transactions(self, kind: TransactionKind, filters: TransactionFilter | None = None) -> list[MoneyTransaction]:
        ...

    def list_inventory_movements(self, filters: MovementFilter | None = None) -> list[InventoryMovement]:
        ...

    def get_stock_snapshots(self, store: str | None = None, product: str | None = None) -> list[StockSnapshot]:
        ...

    def list_parties(self, party_type: PartyType | None = None) -> list[PartyRecord]:
        ...

    def list_products(self, codes: Iterable[str] | None = None) -> list[ProductInfo]:
        ...

    def list_stores(self, active_only: bool = False) -> list[StoreInfo]:
        ...


def _rate_basis(raw: str | None) -> Basis:
    if str(raw or "").strip().lower() in {"quantity", "qty", "pkt"}:
        return Basis.QUANTITY
    return Basis.WEIGHT


def _line(item) -> TransactionLine:
    return TransactionLine(
        store=item.store,
        product=item.product,
        lot=item.reel_no or None,
        quantity=to_decimal(item.quantity),
        weight=to_decimal(item.weight),
        rate=to_decimal(item.rate),
        rate_basis=_rate_basis(item.rate_on),
        value=to_decimal(item.value) if item.value is not None else None,
        description=item.description or "",
    )


def _references_alias(reference: str, aliases: frozenset[str]) -> bool:
    if alias_key(reference) in aliases:
        return True
    return any(alias_key(part) in aliases for part in split_composite(reference))


def _line_selected(line: TransactionLine, filters: TransactionFilter) -> bool:
    if filters.store is not None and line.store != filters.store:
        return False
    if filters.product is not None and line.product != filters.product:
        return False
    return True


class SqlAlchemyTransactionStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _reading(self, what: str):
        try:
            yield
        except DBAPIError as exc:
            logger.error("Transaction store unavailable while reading %s: %s", what, exc)
            raise StoreUnavailableError(f"Transaction store unavailable while reading {what}") from exc

    def list_transactions(self, kind, filters: TransactionFilter | None = None) -> list[MoneyTransaction]:
        kind = TransactionKind(kind)
        filters = filters or TransactionFilter()
        with self._reading(f"{kind.value.lower()} transactions"):
            if kind is TransactionKind.SALE:
                found = [self._sale(row) for row in self._invoices(SaleInvoice, filters)]
            elif kind is TransactionKind.PURCHASE:
                found = [self._purchase(row) for row in self._invoices(PurchaseInvoice, filters)]
            else:
                model = Payment if kind is TransactionKind.PAYMENT else Receipt
                found = [self._voucher(kind, row) for row in self._vouchers(model, filters)]

        if filters.party_aliases is not None:
            found = [txn for txn in found if _references_alias(txn.party_ref, filters.party_aliases)]
        if filters.store is not None or filters.product is not None:
            found = [txn for txn in found if any(_line_selected(line, filters) for line in txn.lines)]
        return found

    def _invoices(self, model, filters: TransactionFilter):
        query = select(model).options(selectinload(model.items))
        if filters.date_range is not None:
            if filters.date_range.start is not None:
                query = query.where(model.date >= filters.date_range.start)
            if filters.date_range.end is not None:
                query = query.where(model.date <= filters.date_range.end)
        return self.db.scalars(query.order_by(model.date, model.id)).all()

    def _vouchers(self, model, filters: TransactionFilter):
        query = select(model)
        if filters.party_type is not None:
            query = query.where(model.party_type == PartyCategory(filters.party_type.value))
        if filters.date_range is not None:
            if filters.date_range.start is not None:
                query = query.where(model.date >= filters.date_range.start)
            if filters.date_range.end is not None:
                query = query.where(model.date <= filters.date_range.end)
        return self.db.scalars(query.order_by(model.date, model.id)).all()

    @staticmethod
    def _sale(row: SaleInvoice) -> MoneyTransaction:
        return MoneyTransaction(
            kind=TransactionKind.SALE,
            id=row.id,
            date=row.date,
            party_ref=row.customer,
            amount=to_decimal(row.net_amount),
            number=row.invoice_number,
            party_type=PartyType.CUSTOMER,
            payment_type=row.payment_type,
            received=to_decimal(row.received),
            notes=row.notes,
            lines=tuple(_line(item) for item in row.items),
        )

    @staticmethod
    def _purchase(row: PurchaseInvoice) -> MoneyTransaction:
        return MoneyTransaction(
            kind=TransactionKind.PURCHASE,
            id=row.id,
            date=row.date,
            party_ref=row.supplier,
            amount=to_decimal(row.total_amount) + to_decimal(row.freight) - to_decimal(row.discount),
            number=row.invoice_number,
            party_type=PartyType.SUPPLIER,
            notes=row.notes,
            lines=tuple(_line(item) for item in row.items),
        )

    @staticmethod
    def _voucher(kind: TransactionKind, row) -> MoneyTransaction:
        return MoneyTransaction(
            kind=kind,
            id=row.id,
            date=row.date,
            party_ref=row.party_ref,
            amount=to_decimal(row.amount),
            number=row.voucher_number,
            party_type=PartyType.parse(row.party_type.value),
            mode=row.mode,
            notes=row.notes,
        )

    def list_inventory_movements(self, filters: MovementFilter | None = None) -> list[InventoryMovement]:
        filters = filters or MovementFilter()
        with self._reading("inventory movements"):
            stores = {row.id: row.name for row in self.db.scalars(select(Store)).all()}
            products = {row.id: row.item for row in self.db.scalars(select(Product)).all()}
            keyed: list[tuple] = []
            for source, item_model, invoice_model in (
                (MovementSource.PURCHASE, PurchaseInvoiceItem, PurchaseInvoice),
                (MovementSource.SALE, SaleInvoiceItem, SaleInvoice),
            ):
                rows = self.db.execute(
                    select(item_model, invoice_model.date)
                    .join(invoice_model, item_model.invoice_id == invoice_model.id)
                    .order_by(invoice_model.date, item_model.id)
                ).all()
                for item, moved_at in rows:
                    movement = InventoryMovement(
                        store=item.store,
                        product=item.product,
                        lot=item.reel_no or None,
                        quantity=to_decimal(item.quantity),
                        weight=to_decimal(item.weight),
                        source=source,
                        date=moved_at,
                    )
                    keyed.append((moved_at, source.value, item.id, movement))

            for source, line_model in (
                (MovementSource.PRODUCTION_OUT, ProductionMaterial),
                (MovementSource.PRODUCTION_IN, ProductionOutput),
            ):
                rows = self.db.execute(
                    select(line_model, Production.date)
                    .join(Production, line_model.production_id == Production.id)
                    .order_by(Production.date, line_model.id)
                ).all()
                for line, moved_at in rows:
                    movement = InventoryMovement(
                        store=stores.get(line.store_id, str(line.store_id)),
                        product=products.get(line.product_id, str(line.product_id)),
                        lot=line.reel_no or None,
                        quantity=to_decimal(line.quantity),
                        weight=to_decimal(line.weight),
                        source=source,
                        date=moved_at,
                    )
                    keyed.append((moved_at, source.value, line.id, movement))

        keyed.sort(key=lambda entry: entry[:3])
        movements = []
        for moved_at, _, _, movement in keyed:
            if filters.store is not None and movement.store != filters.store:
                continue
            if filters.product is not None and movement.product != filters.product:
                continue
            if filters.date_range is not None and not filters.date_range.contains(moved_at):
                continue
            movements.append(movement)
        return movements

    def get_stock_snapshots(self, store: str | None = None, product: str | None = None) -> list[StockSnapshot]:
        query = (
            select(StockSnapshotRow, Store.name, Product.item)
            .join(Store, StockSnapshotRow.store_id == Store.id)
            .join(Product, StockSnapshotRow.product_id == Product.id)
        )
        if store is not None:
            query = query.where(Store.name == store)
        if product is not None:
            query = query.where(Product.item == product)
        with self._reading("stock snapshots"):
            rows = self.db.execute(query.order_by(Store.name, Product.item, StockSnapshotRow.id)).all()
        return [
            StockSnapshot(
                store=store_name,
                product=item,
                lot=row.reel_no or None,
                quantity=to_decimal(row.quantity),
                weight=to_decimal(row.weight),
            )
            for row, store_name, item in rows
        ]

    def list_parties(self, party_type=None) -> list[PartyRecord]:
        query = select(Party)
        if party_type is not None:
            query = query.where(Party.party_type == PartyCategory(PartyType.parse(party_type).value))
        with self._reading("parties"):
            rows = self.db.scalars(query.order_by(Party.id)).all()
        return [
            PartyRecord(
                id=str(row.id),
                party_type=PartyType.parse(row.party_type.value),
                code=row.code,
                person=row.person,
                description=row.description,
                phone=row.phone,
                mobile=row.mobile,
            )
            for row in rows
        ]

    def list_products(self, codes: Iterable[str] | None = None) -> list[ProductInfo]:
        query = select(Product)
        if codes is not None:
            query = query.where(Product.item.in_(list(codes)))
        with self._reading("products"):
            rows = self.db.scalars(query.order_by(Product.item)).all()
        return [
            ProductInfo(
                code=row.item,
                description=row.description or "",
                category=row.category or "",
                kind=row.product_type or "Reel",
                length=to_decimal(row.length),
                width=to_decimal(row.width),
                grams=to_decimal(row.grams),
                default_cost_per_quantity=to_decimal(row.cost_rate_qty),
                min_stock_level=to_decimal(row.min_stock_level),
                is_active=row.is_active,
            )
            for row in rows
        ]

    def list_stores(self, active_only: bool = False) -> list[StoreInfo]:
        query = select(Store)
        if active_only:
            query = query.where(Store.is_active.is_(True))
        with self._reading("stores"):
            rows = self.db.scalars(query.order_by(Store.name)).all()
        return [StoreInfo(name=row.name, is_active=row.is_active, description=row.description or "") for row in rows]
