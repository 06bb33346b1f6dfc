import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from tradeledger.services.costing import (
    CostQuote,
    CostSource,
    aggregate_purchases,
    line_value,
    matching_lines,
    quote_cost,
    snapshot_weight_per_unit,
)
from tradeledger.services.parties import PartyDirectory, ResolvedParty
from tradeledger.services.records import (
    ZERO,
    Basis,
    CostMode,
    DateRange,
    MoneyTransaction,
    PartyRecord,
    PartyType,
    ProductInfo,
    StockSnapshot,
    TransactionKind,
    TransactionLine,
    whole,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
_CASH_MODES = ("Cash", "Bank")


def _line_selected(line: TransactionLine, store: str | None, product: str | None) -> bool:
    if store is not None and line.store != store:
        return False
    if product is not None and line.product != product:
        return False
    return True


def _in_range(txn: MoneyTransaction, date_range: DateRange | None) -> bool:
    return date_range is None or date_range.contains(txn.date)


def _on_or_before(txn: MoneyTransaction, as_of: datetime | None) -> bool:
    return as_of is None or txn.date <= as_of


def _of_kind(transactions, kind: TransactionKind, party_type: PartyType | None = None) -> list[MoneyTransaction]:
    return [
        txn
        for txn in transactions
        if txn.kind is kind and (party_type is None or txn.counterparty_type is party_type)
    ]


def _catalog(products: Sequence[ProductInfo]) -> dict[str, ProductInfo]:
    return {product.code: product for product in products}


@dataclass(frozen=True)
class IncomeStatement:
    revenue: Decimal
    cogs: Decimal

    @property
    def gross_profit(self) -> Decimal:
        return self.revenue - self.cogs

    @property
    def net_profit(self) -> Decimal:
        return self.gross_profit


def income_statement(
    sales: Sequence[MoneyTransaction],
    purchases: Sequence[MoneyTransaction],
    snapshots: Sequence[StockSnapshot],
    products: Sequence[ProductInfo],
    date_range: DateRange,
    *,
    store: str | None = None,
    product: str | None = None,
    customer: ResolvedParty | None = None,
) -> IncomeStatement:
    catalog = _catalog(products)
    item_filtered = store is not None or product is not None
    revenue = ZERO
    sold: dict[tuple[str, str], list[Decimal]] = {}
    for txn in _of_kind(sales, TransactionKind.SALE):
        if not _in_range(txn, date_range):
            continue
        if customer is not None and not customer.matches(txn.party_ref):
            continue
        selected = [line for line in txn.lines if _line_selected(line, store, product)]
        if item_filtered:
            revenue += sum((line_value(line) for line in selected), ZERO)
        else:
            revenue += txn.amount
        for line in selected:
            totals = sold.setdefault((line.store, line.product), [ZERO, ZERO])
            totals[0] += line.quantity
            totals[1] += line.weight

    cogs = ZERO
    for (line_store, line_product), (quantity, weight) in sorted(sold.items()):
        quote = quote_cost(
            purchases,
            line_store,
            line_product,
            as_of=date_range.end,
            snapshot_ratio=snapshot_weight_per_unit(snapshots, line_store, line_product),
            product_info=catalog.get(line_product),
        )
        cogs += weight * quote.per_weight + quantity * quote.per_quantity
    return IncomeStatement(revenue=revenue, cogs=cogs)


@dataclass(frozen=True)
class Account:
    name: str
    debit: int = 0
    credit: int = 0


@dataclass(frozen=True)
class TrialBalance:
    as_of: datetime | None
    accounts: tuple[Account, ...]

    @property
    def total_debit(self) -> int:
        return sum(account.debit for account in self.accounts)

    @property
    def total_credit(self) -> int:
        return sum(account.credit for account in self.accounts)


@dataclass(frozen=True)
class StatementLine:
    name: str
    amount: int


@dataclass(frozen=True)
class BalanceSheet:
    as_of: datetime | None
    assets: tuple[StatementLine, ...]
    liabilities: tuple[StatementLine, ...]
    equity: tuple[StatementLine, ...]

    @property
    def total_assets(self) -> int:
        return sum(line.amount for line in self.assets)

    @property
    def total_liabilities_and_equity(self) -> int:
        return sum(line.amount for line in self.liabilities) + sum(line.amount for line in self.equity)


def _snapshot_quote(
    purchases: Sequence[MoneyTransaction],
    snapshot: StockSnapshot,
    catalog: dict[str, ProductInfo],
    as_of: datetime | None,
    mode=CostMode.WAC,
    by_lot: bool = False,
) -> CostQuote:
    kwargs = dict(
        lot=snapshot.lot if by_lot else None,
        as_of=as_of,
        mode=mode,
        snapshot_ratio=snapshot.weight_per_unit,
        product_info=catalog.get(snapshot.product),
    )
    quote = quote_cost(purchases, snapshot.store, snapshot.product, **kwargs)
    if quote.source in (CostSource.DEFAULT, CostSource.NONE):
        # No history at this store; price from the product's history anywhere.
        wider = quote_cost(purchases, None, snapshot.product, **kwargs)
        if wider.source not in (CostSource.DEFAULT, CostSource.NONE):
            return wider
    return quote


def inventory_value(
    purchases: Sequence[MoneyTransaction],
    snapshots: Sequence[StockSnapshot],
    products: Sequence[ProductInfo],
    as_of: datetime | None,
    *,
    store: str | None = None,
) -> Decimal:
    """Snapshot weight valued at the cost per kg as of ``as_of``."""
    catalog = _catalog(products)
    total = ZERO
    for snapshot in snapshots:
        if store is not None and snapshot.store != store:
            continue
        quote = _snapshot_quote(purchases, snapshot, catalog, as_of)
        total += snapshot.weight * quote.per_weight
    return total


@dataclass(frozen=True)
class _Position:
    inventory: int
    receivable: int
    payable: int
    cash_bank: int
    sales: int


def _position(transactions, snapshots, products, as_of: datetime | None, store: str | None = None) -> _Position:
    sales = sum((t.amount for t in _of_kind(transactions, TransactionKind.SALE) if _on_or_before(t, as_of)), ZERO)
    purchases_total = sum(
        (t.amount for t in _of_kind(transactions, TransactionKind.PURCHASE) if _on_or_before(t, as_of)), ZERO
    )
    customer_receipts = sum(
        (
            t.amount
            for t in _of_kind(transactions, TransactionKind.RECEIPT, PartyType.CUSTOMER)
            if _on_or_before(t, as_of)
        ),
        ZERO,
    )
    supplier_payments = sum(
        (
            t.amount
            for t in _of_kind(transactions, TransactionKind.PAYMENT, PartyType.SUPPLIER)
            if _on_or_before(t, as_of)
        ),
        ZERO,
    )
    cash_in = sum(
        (
            t.amount
            for t in _of_kind(transactions, TransactionKind.RECEIPT)
            if _on_or_before(t, as_of) and t.has_mode(*_CASH_MODES)
        ),
        ZERO,
    )
    cash_out = sum(
        (
            t.amount
            for t in _of_kind(transactions, TransactionKind.PAYMENT)
            if _on_or_before(t, as_of) and t.has_mode(*_CASH_MODES)
        ),
        ZERO,
    )
    purchases = _of_kind(transactions, TransactionKind.PURCHASE)
    return _Position(
        inventory=whole(inventory_value(purchases, snapshots, products, as_of, store=store)),
        receivable=whole(max(ZERO, sales - customer_receipts)),
        payable=whole(max(ZERO, purchases_total - supplier_payments)),
        cash_bank=whole(cash_in - cash_out),
        sales=whole(sales),
    )


def trial_balance(
    transactions: Sequence[MoneyTransaction],
    snapshots: Sequence[StockSnapshot],
    products: Sequence[ProductInfo],
    as_of: datetime | None,
) -> TrialBalance:
    position = _position(transactions, snapshots, products, as_of)
    accounts = [
        Account(
            "Cash/Bank",
            debit=max(position.cash_bank, 0),
            credit=max(-position.cash_bank, 0),
        ),
        Account("Inventory", debit=position.inventory),
    ]
    if position.receivable:
        accounts.append(Account("Accounts Receivable", debit=position.receivable))
    if position.payable:
        accounts.append(Account("Accounts Payable", credit=position.payable))
    if position.sales:
        accounts.append(Account("Sales Revenue", credit=position.sales))

    difference = sum(a.debit for a in accounts) - sum(a.credit for a in accounts)
    if difference > 0:
        accounts.append(Account("Equity (Balancing)", credit=difference))
    elif difference < 0:
        accounts.append(Account("Equity (Balancing)", debit=-difference))
    return TrialBalance(as_of=as_of, accounts=tuple(accounts))


def balance_sheet(
    transactions: Sequence[MoneyTransaction],
    snapshots: Sequence[StockSnapshot],
    products: Sequence[ProductInfo],
    as_of: datetime | None,
    *,
    store: str | None = None,
) -> BalanceSheet:
    position = _position(transactions, snapshots, products, as_of, store=store)
    assets = (
        StatementLine("Inventory", position.inventory),
        StatementLine("Accounts Receivable", position.receivable),
        StatementLine("Cash/Bank", position.cash_bank),
    )
    liabilities = (StatementLine("Accounts Payable", position.payable),)
    retained = sum(line.amount for line in assets) - position.payable
    return BalanceSheet(
        as_of=as_of,
        assets=assets,
        liabilities=liabilities,
        equity=(StatementLine("Retained Earnings", retained),),
    )


@dataclass(frozen=True)
class BalanceRow:
    party: str
    invoiced: Decimal
    settled: Decimal
    phone: str | None = None
    whatsapp: str | None = None

    @property
    def balance_due(self) -> Decimal:
        return max(ZERO, self.invoiced - self.settled)


def _balance_rows(
    directory: PartyDirectory,
    invoiced: dict[str, Decimal],
    settled: dict[str, Decimal],
    include_all: bool,
) -> list[BalanceRow]:
    names = set(invoiced) | set(settled)
    if include_all:
        names |= {directory.canonical_name(party.id) for party in directory.parties}
    rows = []
    for name in names:
        phone, whatsapp = directory.contact(name)
        rows.append(
            BalanceRow(
                party=name,
                invoiced=invoiced.get(name, ZERO),
                settled=settled.get(name, ZERO),
                phone=phone,
                whatsapp=whatsapp,
            )
        )
    rows.sort(key=lambda row: (-row.balance_due, -row.invoiced, row.party))
    return rows


def receivables(
    transactions: Sequence[MoneyTransaction],
    parties: Sequence[PartyRecord],
    *,
    date_range: DateRange | None = None,
    store: str | None = None,
    product: str | None = None,
    customer: ResolvedParty | None = None,
) -> list[BalanceRow]:
    directory = PartyDirectory(parties, PartyType.CUSTOMER)
    as_of = date_range.end if date_range is not None else None
    item_filtered = store is not None or product is not None
    invoiced: dict[str, Decimal] = {}
    settled: dict[str, Decimal] = {}

    for txn in _of_kind(transactions, TransactionKind.SALE):
        if not _in_range(txn, date_range):
            continue
        if customer is not None and not customer.matches(txn.party_ref):
            continue
        if item_filtered:
            total = sum((line_value(line) for line in txn.lines), ZERO)
            matched = sum((line_value(line) for line in txn.lines if _line_selected(line, store, product)), ZERO)
            if matched <= 0:
                continue
            amount = matched
            received = txn.received * matched / total if total > 0 else ZERO
        else:
            amount = txn.amount
            received = txn.received
        name = directory.canonical_name(txn.party_ref)
        invoiced[name] = invoiced.get(name, ZERO) + amount
        settled[name] = settled.get(name, ZERO) + received

    for txn in _of_kind(transactions, TransactionKind.RECEIPT, PartyType.CUSTOMER):
        if not _on_or_before(txn, as_of):
            continue
        if customer is not None and not customer.matches(txn.party_ref):
            continue
        name = directory.canonical_name(txn.party_ref)
        settled[name] = settled.get(name, ZERO) + txn.amount

    return _balance_rows(directory, invoiced, settled, include_all=customer is None)


def payables(
    transactions: Sequence[MoneyTransaction],
    parties: Sequence[PartyRecord],
    *,
    date_range: DateRange | None = None,
    store: str | None = None,
    product: str | None = None,
    supplier: ResolvedParty | None = None,
) -> list[BalanceRow]:
    directory = PartyDirectory(parties, PartyType.SUPPLIER)
    as_of = date_range.end if date_range is not None else None
    item_filtered = store is not None or product is not None
    purchased: dict[str, Decimal] = {}
    paid: dict[str, Decimal] = {}

    for txn in _of_kind(transactions, TransactionKind.PURCHASE):
        if not _in_range(txn, date_range):
            continue
        if supplier is not None and not supplier.matches(txn.party_ref):
            continue
        if item_filtered:
            amount = sum((line_value(line) for line in txn.lines if _line_selected(line, store, product)), ZERO)
            if amount <= 0:
                continue
        else:
            amount = txn.amount
        name = directory.canonical_name(txn.party_ref)
        purchased[name] = purchased.get(name, ZERO) + amount

    for txn in _of_kind(transactions, TransactionKind.PAYMENT, PartyType.SUPPLIER):
        if not _on_or_before(txn, as_of):
            continue
        if supplier is not None and not supplier.matches(txn.party_ref):
            continue
        name = directory.canonical_name(txn.party_ref)
        paid[name] = paid.get(name, ZERO) + txn.amount

    return _balance_rows(directory, purchased, paid, include_all=supplier is None)


@dataclass(frozen=True)
class ProfitRow:
    key: str
    quantity: Decimal
    weight: Decimal
    revenue: Decimal
    cost: Decimal
    invoices: int = 0

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.cost

    @property
    def margin(self) -> Decimal:
        if self.revenue == 0:
            return ZERO
        return self.profit / self.revenue * HUNDRED


class _SoldCost:
    def __init__(self, purchases, products, as_of: datetime | None, store_scoped: bool):
        self._purchases = purchases
        self._catalog = _catalog(products)
        self._as_of = as_of
        self._store_scoped = store_scoped
        self._per_weight: dict[tuple, Decimal | None] = {}

    def __call__(self, line: TransactionLine) -> Decimal:
        key = (line.store if self._store_scoped else None, line.product)
        if key not in self._per_weight:
            found = matching_lines(self._purchases, key[0], line.product, as_of=self._as_of)
            self._per_weight[key] = aggregate_purchases(priced.line for priced in found).per_unit(Basis.WEIGHT)
        per_weight = self._per_weight[key]
        if per_weight is not None and line.weight > 0:
            return per_weight * line.weight
        info = self._catalog.get(line.product)
        if info is not None and info.default_cost_per_quantity > 0:
            return info.default_cost_per_quantity * line.quantity
        logger.info("No cost for sold product %r at store %r; costed at 0", line.product, line.store)
        return ZERO


def _profit_rows(groups: dict[str, dict]) -> list[ProfitRow]:
    rows = [
        ProfitRow(
            key=key,
            quantity=group["quantity"],
            weight=group["weight"],
            revenue=group["revenue"],
            cost=group["cost"],
            invoices=len(group["invoices"]),
        )
        for key, group in groups.items()
    ]
    rows.sort(key=lambda row: (-row.profit, row.key))
    return rows


def _profit_groups(sales, purchases, products, date_range, store, product, customer, group_key) -> dict[str, dict]:
    cost_of = _SoldCost(purchases, products, date_range.end if date_range else None, store is not None)
    groups: dict[str, dict] = {}
    for txn in _of_kind(sales, TransactionKind.SALE):
        if not _in_range(txn, date_range):
            continue
        if customer is not None and not customer.matches(txn.party_ref):
            continue
        for line in txn.lines:
            if not _line_selected(line, store, product):
                continue
            group = groups.setdefault(
                group_key(txn, line),
                {"quantity": ZERO, "weight": ZERO, "revenue": ZERO, "cost": ZERO, "invoices": set()},
            )
            group["quantity"] += line.quantity
            group["weight"] += line.weight
            group["revenue"] += line_value(line)
            group["cost"] += cost_of(line)
            group["invoices"].add(txn.id)
    return groups


def item_profit(
    sales: Sequence[MoneyTransaction],
    purchases: Sequence[MoneyTransaction],
    products: Sequence[ProductInfo],
    *,
    date_range: DateRange | None = None,
    store: str | None = None,
    product: str | None = None,
    customer: ResolvedParty | None = None,
) -> list[ProfitRow]:
    groups = _profit_groups(
        sales, purchases, products, date_range, store, product, customer, lambda txn, line: line.product
    )
    return _profit_rows(groups)


def customer_profit(
    sales: Sequence[MoneyTransaction],
    purchases: Sequence[MoneyTransaction],
    products: Sequence[ProductInfo],
    parties: Sequence[PartyRecord],
    *,
    date_range: DateRange | None = None,
    store: str | None = None,
    product: str | None = None,
    customer: ResolvedParty | None = None,
) -> list[ProfitRow]:
    directory = PartyDirectory(parties, PartyType.CUSTOMER)
    groups = _profit_groups(
        sales,
        purchases,
        products,
        date_range,
        store,
        product,
        customer,
        lambda txn, line: directory.canonical_name(txn.party_ref),
    )
    return _profit_rows(groups)


@dataclass(frozen=True)
class ValuationRow:
    store: str
    product: str
    lot: str | None
    quantity: Decimal
    weight: Decimal
    unit_cost: Decimal
    value: Decimal
    source: CostSource


def inventory_valuation(
    purchases: Sequence[MoneyTransaction],
    snapshots: Sequence[StockSnapshot],
    products: Sequence[ProductInfo],
    *,
    as_of: datetime | None = None,
    store: str | None = None,
    product: str | None = None,
    mode=CostMode.WAC,
    basis=Basis.WEIGHT,
    by_lot: bool = False,
) -> list[ValuationRow]:
    basis = Basis.parse(basis)
    mode = CostMode.parse(mode)
    catalog = _catalog(products)
    rows = []
    for snapshot in snapshots:
        if store is not None and snapshot.store != store:
            continue
        if product is not None and snapshot.product != product:
            continue
        quote = _snapshot_quote(purchases, snapshot, catalog, as_of, mode=mode, by_lot=by_lot)
        per_unit = quote.for_basis(basis)
        measure = snapshot.quantity if basis is Basis.QUANTITY else snapshot.weight
        rows.append(
            ValuationRow(
                store=snapshot.store,
                product=snapshot.product,
                lot=snapshot.lot,
                quantity=snapshot.quantity,
                weight=snapshot.weight,
                unit_cost=per_unit,
                value=per_unit * measure,
                source=quote.source,
            )
        )
    rows.sort(key=lambda row: (row.store, row.product, row.lot or ""))
    return rows


@dataclass(frozen=True)
class CashFlowRow:
    date: datetime
    direction: str
    description: str
    amount: Decimal
    mode: str | None = None

    @property
    def inflow(self) -> Decimal:
        return self.amount if self.direction == "inflow" else ZERO

    @property
    def outflow(self) -> Decimal:
        return self.amount if self.direction == "outflow" else ZERO


def cash_flow(
    transactions: Sequence[MoneyTransaction],
    parties: Sequence[PartyRecord],
    *,
    date_range: DateRange | None = None,
    customer: ResolvedParty | None = None,
) -> list[CashFlowRow]:
    """Receipts as inflows and payments as outflows, inflows first on the same day."""
    directories = {party_type: PartyDirectory(parties, party_type) for party_type in PartyType}
    rows = []
    for txn in transactions:
        if txn.kind not in (TransactionKind.RECEIPT, TransactionKind.PAYMENT):
            continue
        if not _in_range(txn, date_range):
            continue
        if customer is not None and (
            txn.party_type is not PartyType.CUSTOMER or not customer.matches(txn.party_ref)
        ):
            continue
        if txn.party_type is not None:
            name = directories[txn.party_type].canonical_name(txn.party_ref)
        else:
            name = txn.party_ref or "N/A"
        if txn.kind is TransactionKind.RECEIPT:
            direction, description = "inflow", f"Receipt from {name}"
        else:
            direction, description = "outflow", f"Payment to {name}"
        if txn.mode:
            description = f"{description} ({txn.mode})"
        rows.append(CashFlowRow(date=txn.date, direction=direction, description=description, amount=txn.amount, mode=txn.mode))
    rows.sort(key=lambda row: (row.date.date(), row.direction, row.date, row.description))
    return rows
