from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class StockRowOut(BaseModel):
    store: str
    product: str
    lot: str | None
    description: str
    category: str
    source: str
    current_quantity: Decimal
    current_weight: Decimal
    derived_quantity: Decimal
    derived_weight: Decimal
    purchased_quantity: Decimal
    purchased_weight: Decimal
    sold_quantity: Decimal
    sold_weight: Decimal
    consumed_quantity: Decimal
    consumed_weight: Decimal
    produced_quantity: Decimal
    produced_weight: Decimal
    min_stock_level: Decimal
    below_minimum: bool

    model_config = {"from_attributes": True}


class IncomeStatementOut(BaseModel):
    date_from: date | None
    date_to: date | None
    revenue: int
    cogs: int
    gross_profit: int
    net_profit: int


class AccountOut(BaseModel):
    account: str
    debit: int
    credit: int


class TrialBalanceOut(BaseModel):
    as_of: date | None
    accounts: list[AccountOut]
    total_debit: int
    total_credit: int


class StatementLineOut(BaseModel):
    account: str
    amount: int


class BalanceSheetOut(BaseModel):
    as_of: date | None
    assets: list[StatementLineOut]
    liabilities: list[StatementLineOut]
    equity: list[StatementLineOut]
    total_assets: int
    total_liabilities_and_equity: int


class ReceivableOut(BaseModel):
    customer: str
    total_invoiced: int
    amount_received: int
    balance_due: int
    phone: str | None
    whatsapp: str | None


class PayableOut(BaseModel):
    supplier: str
    total_purchased: int
    amount_paid: int
    balance_due: int
    phone: str | None
    whatsapp: str | None


class ProfitRowOut(BaseModel):
    key: str
    quantity: Decimal
    weight: Decimal
    revenue: int
    cost: int
    profit: int
    margin: Decimal
    invoices: int


class ValuationRowOut(BaseModel):
    store: str
    product: str
    lot: str | None
    quantity: Decimal
    weight: Decimal
    unit_cost: Decimal
    value: int
    source: str


class CashFlowRowOut(BaseModel):
    date: datetime
    type: str
    description: str
    mode: str | None
    inflow: int
    outflow: int


class CashFlowOut(BaseModel):
    rows: list[CashFlowRowOut]
    total_inflow: int
    total_outflow: int
    net: int
