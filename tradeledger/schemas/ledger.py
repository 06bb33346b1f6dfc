from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class PartyOut(BaseModel):
    party_type: str
    query: str
    display_name: str
    aliases: list[str]
    phone: str | None
    whatsapp: str | None
    matched: bool
    party_ids: list[str]


class LedgerEntryOut(BaseModel):
    date: datetime
    kind: str
    voucher: str
    label: str
    quantity: Decimal
    weight: Decimal
    rate: Decimal
    lot: str | None
    debit: int
    credit: int
    balance: int


class LedgerOut(BaseModel):
    party_type: str
    party: str
    opening_balance: int
    total_debit: int
    total_credit: int
    closing_balance: int
    entries: list[LedgerEntryOut]


class UnitCostOut(BaseModel):
    store: str | None
    product: str
    lot: str | None
    as_of: date | None
    mode: str
    basis: str
    unit_cost: Decimal
    per_quantity: Decimal
    per_weight: Decimal
    source: str
