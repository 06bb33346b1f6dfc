from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from fastapi import APIRouter, Depends

from tradeledger.api.deps import Principal, get_service, require_permission
from tradeledger.schemas.reports import (
    AccountOut,
    BalanceSheetOut,
    CashFlowOut,
    CashFlowRowOut,
    IncomeStatementOut,
    PayableOut,
    ProfitRowOut,
    ReceivableOut,
    StatementLineOut,
    StockRowOut,
    TrialBalanceOut,
    ValuationRowOut,
)
from tradeledger.services.reconciliation import ReconciliationService
from tradeledger.services.records import ZERO, four_places, whole
from tradeledger.services.reports import ProfitRow

router = APIRouter(prefix="/reports", tags=["Reports"])


def _profit_out(row: ProfitRow) -> ProfitRowOut:
    return ProfitRowOut(
        key=row.key,
        quantity=row.quantity,
        weight=row.weight,
        revenue=whole(row.revenue),
        cost=whole(row.cost),
        profit=whole(row.profit),
        margin=row.margin.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        invoices=row.invoices,
    )


@router.get("/store-stock", response_model=list[StockRowOut])
def store_stock(
    store: str | None = None,
    by_lot: bool = False,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    return [StockRowOut.model_validate(row) for row in service.get_store_stock(store, by_lot=by_lot)]


@router.get("/income-statement", response_model=IncomeStatementOut)
def income_statement(
    date_from: date | None = None,
    date_to: date | None = None,
    store: str | None = None,
    product: str | None = None,
    customer: str | None = None,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    statement = service.get_income_statement(date_from, date_to, store, product, customer)
    return IncomeStatementOut(
        date_from=date_from,
        date_to=date_to,
        revenue=whole(statement.revenue),
        cogs=whole(statement.cogs),
        gross_profit=whole(statement.gross_profit),
        net_profit=whole(statement.net_profit),
    )


@router.get("/trial-balance", response_model=TrialBalanceOut)
def trial_balance(
    as_of: date | None = None,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    balance = service.get_trial_balance(as_of)
    return TrialBalanceOut(
        as_of=as_of,
        accounts=[AccountOut(account=a.name, debit=a.debit, credit=a.credit) for a in balance.accounts],
        total_debit=balance.total_debit,
        total_credit=balance.total_credit,
    )


@router.get("/balance-sheet", response_model=BalanceSheetOut)
def balance_sheet(
    as_of: date | None = None,
    store: str | None = None,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    sheet = service.get_balance_sheet(as_of, store)
    return BalanceSheetOut(
        as_of=as_of,
        assets=[StatementLineOut(account=line.name, amount=line.amount) for line in sheet.assets],
        liabilities=[StatementLineOut(account=line.name, amount=line.amount) for line in sheet.liabilities],
        equity=[StatementLineOut(account=line.name, amount=line.amount) for line in sheet.equity],
        total_assets=sheet.total_assets,
        total_liabilities_and_equity=sheet.total_liabilities_and_equity,
    )


@router.get("/receivables", response_model=list[ReceivableOut])
def receivables(
    date_from: date | None = None,
    date_to: date | None = None,
    store: str | None = None,
    product: str | None = None,
    customer: str | None = None,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    rows = service.get_receivables(date_from, date_to, store, product, customer)
    return [
        ReceivableOut(
            customer=row.party,
            total_invoiced=whole(row.invoiced),
            amount_received=whole(row.settled),
            balance_due=whole(row.balance_due),
            phone=row.phone,
            whatsapp=row.whatsapp,
        )
        for row in rows
    ]


@router.get("/payables", response_model=list[PayableOut])
def payables(
    date_from: date | None = None,
    date_to: date | None = None,
    store: str | None = None,
    product: str | None = None,
    supplier: str | None = None,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    rows = service.get_payables(date_from, date_to, store, product, supplier)
    return [
        PayableOut(
            supplier=row.party,
            total_purchased=whole(row.invoiced),
            amount_paid=whole(row.settled),
            balance_due=whole(row.balance_due),
            phone=row.phone,
            whatsapp=row.whatsapp,
        )
        for row in rows
    ]


@router.get("/item-profit", response_model=list[ProfitRowOut])
def item_profit(
    date_from: date | None = None,
    date_to: date | None = None,
    store: str | None = None,
    product: str | None = None,
    customer: str | None = None,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    return [_profit_out(row) for row in service.get_item_profit(date_from, date_to, store, product, customer)]


@router.get("/customer-profit", response_model=list[ProfitRowOut])
def customer_profit(
    date_from: date | None = None,
    date_to: date | None = None,
    store: str | None = None,
    product: str | None = None,
    customer: str | None = None,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    return [_profit_out(row) for row in service.get_customer_profit(date_from, date_to, store, product, customer)]


@router.get("/inventory-valuation", response_model=list[ValuationRowOut])
def inventory_valuation(
    as_of: date | None = None,
    store: str | None = None,
    product: str | None = None,
    mode: str = "wac",
    basis: str = "Weight",
    by_lot: bool = False,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    rows = service.get_inventory_valuation(as_of, store, product, mode, basis, by_lot)
    return [
        ValuationRowOut(
            store=row.store,
            product=row.product,
            lot=row.lot,
            quantity=row.quantity,
            weight=row.weight,
            unit_cost=four_places(row.unit_cost),
            value=whole(row.value),
            source=row.source.value,
        )
        for row in rows
    ]


@router.get("/cash-flow", response_model=CashFlowOut)
def cash_flow(
    date_from: date | None = None,
    date_to: date | None = None,
    customer: str | None = None,
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    rows = service.get_cash_flow(date_from, date_to, customer)
    total_inflow = sum((row.inflow for row in rows), ZERO)
    total_outflow = sum((row.outflow for row in rows), ZERO)
    return CashFlowOut(
        rows=[
            CashFlowRowOut(
                date=row.date,
                type=row.direction,
                description=row.description,
                mode=row.mode,
                inflow=whole(row.inflow),
                outflow=whole(row.outflow),
            )
            for row in rows
        ],
        total_inflow=whole(total_inflow),
        total_outflow=whole(total_outflow),
        net=whole(total_inflow - total_outflow),
    )
