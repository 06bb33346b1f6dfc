import logging
from datetime import date
from decimal import Decimal

from tradeledger.core.errors import ValidationFailure
from tradeledger.services import reports
from tradeledger.services.costing import CostQuote, quote_cost, snapshot_weight_per_unit
from tradeledger.services.ledger import Ledger, build_ledger
from tradeledger.services.parties import ResolvedParty, resolve_party
from tradeledger.services.records import (
    ALL_PARTIES,
    Basis,
    CostMode,
    DateRange,
    MoneyTransaction,
    MovementFilter,
    PartyType,
    TransactionFilter,
    TransactionKind,
)
from tradeledger.services.repository import TransactionStore
from tradeledger.services.stock import StockRow, reconcile_stock

logger = logging.getLogger(__name__)

_KIND_ORDER = {
    TransactionKind.PAYMENT: 0,
    TransactionKind.RECEIPT: 1,
    TransactionKind.SALE: 2,
    TransactionKind.PURCHASE: 3,
}


def _optional(value) -> str | None:
    cleaned = str(value).strip() if value is not None else ""
    return cleaned or None


def merge_transactions(*collections) -> list[MoneyTransaction]:
    merged = [txn for collection in collections for txn in collection]
    merged.sort(key=lambda txn: (txn.date, _KIND_ORDER[txn.kind], txn.id))
    return merged


class ReconciliationService:
    def __init__(self, store: TransactionStore):
        self.store = store

    def _read(self, *kinds: TransactionKind, filters: TransactionFilter | None = None) -> list[MoneyTransaction]:
        return merge_transactions(*(self.store.list_transactions(kind, filters) for kind in kinds))

    def _read_all(self, date_range: DateRange | None = None) -> list[MoneyTransaction]:
        return self._read(
            TransactionKind.PURCHASE,
            TransactionKind.SALE,
            TransactionKind.PAYMENT,
            TransactionKind.RECEIPT,
            filters=TransactionFilter(date_range=date_range),
        )

    def _resolve_optional(self, party_type: PartyType, query) -> ResolvedParty | None:
        query = _optional(query)
        if query is None:
            return None
        return self.resolve_party(party_type, query)

    def resolve_party(self, party_type, query) -> ResolvedParty:
        party_type = PartyType.parse(party_type)
        return resolve_party(self.store.list_parties(party_type), party_type, query)

    def get_ledger(self, party_type, party, date_from: date | None = None, date_to: date | None = None) -> Ledger:
        party_type = PartyType.parse(party_type)
        date_range = DateRange.from_dates(date_from, date_to)
        reference = _optional(party)
        resolved = None
        if reference is None or reference.lower() != ALL_PARTIES:
            resolved = self.resolve_party(party_type, reference)

        invoice_kind = TransactionKind.SALE if party_type is PartyType.CUSTOMER else TransactionKind.PURCHASE
        filters = TransactionFilter(
            party_type=party_type,
            party_aliases=resolved.aliases if resolved is not None else None,
            # Everything up to the range end: earlier rows feed the opening balance.
            date_range=DateRange(end=date_range.end),
        )
        transactions = self._read(invoice_kind, TransactionKind.PAYMENT, TransactionKind.RECEIPT, filters=filters)
        return build_ledger(party_type, resolved, transactions, date_range)

    def quote_unit_cost(
        self,
        store,
        product,
        lot=None,
        as_of: date | None = None,
        mode=CostMode.WAC,
    ) -> CostQuote:
        store = _optional(store)
        product = _optional(product)
        lot = _optional(lot)
        if product is None:
            raise ValidationFailure("Product is required for a unit cost")
        mode = CostMode.parse(mode)
        cutoff = DateRange.until(as_of).end
        purchases = self.store.list_transactions(
            TransactionKind.PURCHASE,
            TransactionFilter(date_range=DateRange(end=cutoff), store=store, product=product),
        )
        snapshots = self.store.get_stock_snapshots(store, product)
        products = self.store.list_products([product])
        return quote_cost(
            purchases,
            store,
            product,
            lot=lot,
            as_of=cutoff,
            mode=mode,
            snapshot_ratio=snapshot_weight_per_unit(snapshots, store, product, lot),
            product_info=products[0] if products else None,
        )

    def get_unit_cost(self, store, product, lot=None, as_of: date | None = None, mode=CostMode.WAC, basis=Basis.QUANTITY) -> Decimal:
        basis = Basis.parse(basis)
        return self.quote_unit_cost(store, product, lot, as_of, mode).for_basis(basis)

    def get_store_stock(self, store=None, by_lot: bool = False) -> list[StockRow]:
        store = _optional(store)
        movements = self.store.list_inventory_movements(MovementFilter(store=store))
        snapshots = self.store.get_stock_snapshots(store)
        stores = self.store.list_stores(active_only=True)
        products = self.store.list_products()
        return reconcile_stock(movements, snapshots, stores, products, store=store, by_lot=by_lot)

    def get_income_statement(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        store=None,
        product=None,
        customer=None,
    ) -> reports.IncomeStatement:
        date_range = DateRange.from_dates(date_from, date_to)
        resolved = self._resolve_optional(PartyType.CUSTOMER, customer)
        sales = self.store.list_transactions(TransactionKind.SALE, TransactionFilter(date_range=date_range))
        purchases = self.store.list_transactions(
            TransactionKind.PURCHASE, TransactionFilter(date_range=DateRange(end=date_range.end))
        )
        return reports.income_statement(
            sales,
            purchases,
            self.store.get_stock_snapshots(),
            self.store.list_products(),
            date_range,
            store=_optional(store),
            product=_optional(product),
            customer=resolved,
        )

    def get_trial_balance(self, as_of: date | None = None) -> reports.TrialBalance:
        cutoff = DateRange.until(as_of)
        return reports.trial_balance(
            self._read_all(cutoff),
            self.store.get_stock_snapshots(),
            self.store.list_products(),
            cutoff.end,
        )

    def get_balance_sheet(self, as_of: date | None = None, store=None) -> reports.BalanceSheet:
        cutoff = DateRange.until(as_of)
        return reports.balance_sheet(
            self._read_all(cutoff),
            self.store.get_stock_snapshots(),
            self.store.list_products(),
            cutoff.end,
            store=_optional(store),
        )

    def get_receivables(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        store=None,
        product=None,
        customer=None,
    ) -> list[reports.BalanceRow]:
        date_range = DateRange.from_dates(date_from, date_to)
        resolved = self._resolve_optional(PartyType.CUSTOMER, customer)
        transactions = self._read(
            TransactionKind.SALE,
            TransactionKind.RECEIPT,
            filters=TransactionFilter(date_range=DateRange(end=date_range.end)),
        )
        return reports.receivables(
            transactions,
            self.store.list_parties(PartyType.CUSTOMER),
            date_range=date_range,
            store=_optional(store),
            product=_optional(product),
            customer=resolved,
        )

    def get_payables(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        store=None,
        product=None,
        supplier=None,
    ) -> list[reports.BalanceRow]:
        date_range = DateRange.from_dates(date_from, date_to)
        resolved = self._resolve_optional(PartyType.SUPPLIER, supplier)
        transactions = self._read(
            TransactionKind.PURCHASE,
            TransactionKind.PAYMENT,
            filters=TransactionFilter(date_range=DateRange(end=date_range.end)),
        )
        return reports.payables(
            transactions,
            self.store.list_parties(PartyType.SUPPLIER),
            date_range=date_range,
            store=_optional(store),
            product=_optional(product),
            supplier=resolved,
        )

    def _profit_inputs(self, date_from, date_to, customer):
        date_range = DateRange.from_dates(date_from, date_to)
        resolved = self._resolve_optional(PartyType.CUSTOMER, customer)
        sales = self.store.list_transactions(TransactionKind.SALE, TransactionFilter(date_range=date_range))
        purchases = self.store.list_transactions(
            TransactionKind.PURCHASE, TransactionFilter(date_range=DateRange(end=date_range.end))
        )
        return date_range, resolved, sales, purchases

    def get_item_profit(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        store=None,
        product=None,
        customer=None,
    ) -> list[reports.ProfitRow]:
        date_range, resolved, sales, purchases = self._profit_inputs(date_from, date_to, customer)
        return reports.item_profit(
            sales,
            purchases,
            self.store.list_products(),
            date_range=date_range,
            store=_optional(store),
            product=_optional(product),
            customer=resolved,
        )

    def get_customer_profit(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        store=None,
        product=None,
        customer=None,
    ) -> list[reports.ProfitRow]:
        date_range, resolved, sales, purchases = self._profit_inputs(date_from, date_to, customer)
        return reports.customer_profit(
            sales,
            purchases,
            self.store.list_products(),
            self.store.list_parties(PartyType.CUSTOMER),
            date_range=date_range,
            store=_optional(store),
            product=_optional(product),
            customer=resolved,
        )

    def get_inventory_valuation(
        self,
        as_of: date | None = None,
        store=None,
        product=None,
        mode=CostMode.WAC,
        basis=Basis.WEIGHT,
        by_lot: bool = False,
    ) -> list[reports.ValuationRow]:
        cutoff = DateRange.until(as_of)
        mode = CostMode.parse(mode)
        basis = Basis.parse(basis)
        store = _optional(store)
        product = _optional(product)
        purchases = self.store.list_transactions(TransactionKind.PURCHASE, TransactionFilter(date_range=cutoff))
        return reports.inventory_valuation(
            purchases,
            self.store.get_stock_snapshots(store, product),
            self.store.list_products(),
            as_of=cutoff.end,
            store=store,
            product=product,
            mode=mode,
            basis=basis,
            by_lot=by_lot,
        )

    def get_cash_flow(self, date_from: date | None = None, date_to: date | None = None, customer=None) -> list[reports.CashFlowRow]:
        date_range = DateRange.from_dates(date_from, date_to)
        resolved = self._resolve_optional(PartyType.CUSTOMER, customer)
        transactions = self._read(
            TransactionKind.RECEIPT,
            TransactionKind.PAYMENT,
            filters=TransactionFilter(date_range=date_range),
        )
        return reports.cash_flow(
            transactions,
            self.store.list_parties(),
            date_range=date_range,
            customer=resolved,
        )
