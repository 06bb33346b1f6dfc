import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from tradeledger.core.errors import ValidationFailure
from tradeledger.services.costing import line_value
from tradeledger.services.parties import ResolvedParty
from tradeledger.services.records import (
    ALL_PARTIES,
    ZERO,
    DateRange,
    MoneyTransaction,
    PartyType,
    TransactionKind,
)

logger = logging.getLogger(__name__)

# Same-day tiebreak between collections.
_SOURCE_ORDER = {
    TransactionKind.PAYMENT: 0,
    TransactionKind.RECEIPT: 1,
    TransactionKind.SALE: 2,
    TransactionKind.PURCHASE: 3,
}


@dataclass(frozen=True)
class Posting:
    date: datetime
    kind: TransactionKind
    voucher: str
    debit: Decimal
    credit: Decimal
    label: str
    sort_key: tuple
    quantity: Decimal = ZERO
    weight: Decimal = ZERO
    rate: Decimal = ZERO
    lot: str | None = None


@dataclass(frozen=True)
class LedgerEntry:
    date: datetime
    kind: TransactionKind
    voucher: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    label: str
    quantity: Decimal = ZERO
    weight: Decimal = ZERO
    rate: Decimal = ZERO
    lot: str | None = None


@dataclass(frozen=True)
class Ledger:
    party_type: PartyType
    party: str
    opening_balance: Decimal
    entries: tuple[LedgerEntry, ...]

    @property
    def closing_balance(self) -> Decimal:
        return self.entries[-1].balance if self.entries else self.opening_balance

    @property
    def total_debit(self) -> Decimal:
        return sum((entry.debit for entry in self.entries), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((entry.credit for entry in self.entries), ZERO)


def invoice_amount(txn: MoneyTransaction) -> Decimal:
    total = sum((line_value(line) for line in txn.lines), ZERO)
    return total if total > 0 else txn.amount


def invoice_label(txn: MoneyTransaction) -> str:
    count = len(txn.lines)
    if count > 1:
        return f"{txn.kind.value} Invoice ({count} items)"
    if count == 1:
        line = txn.lines[0]
        return line.description or line.product or f"{txn.kind.value} Invoice"
    return f"{txn.kind.value} Invoice"


def _invoice_posting(txn: MoneyTransaction, *, debit: Decimal, credit: Decimal, seq: int, label: str) -> Posting:
    single = txn.lines[0] if len(txn.lines) == 1 else None
    return Posting(
        date=txn.date,
        kind=txn.kind,
        voucher=txn.number,
        debit=debit,
        credit=credit,
        label=label,
        sort_key=(txn.date, _SOURCE_ORDER[txn.kind], txn.id, seq),
        quantity=sum((line.quantity for line in txn.lines), ZERO),
        weight=sum((line.weight for line in txn.lines), ZERO),
        rate=single.rate if single is not None else ZERO,
        lot=single.lot if single is not None else None,
    )


# Debit means the party owes us more. A cash sale posts a matching credit.
def postings_for(txn: MoneyTransaction, party_type: PartyType) -> list[Posting]:
    kind = txn.kind
    if kind in (TransactionKind.PAYMENT, TransactionKind.RECEIPT):
        if kind is TransactionKind.PAYMENT and party_type is PartyType.SUPPLIER:
            debit, credit = txn.amount, ZERO
        else:
            debit, credit = ZERO, txn.amount
        return [
            Posting(
                date=txn.date,
                kind=kind,
                voucher=txn.number,
                debit=debit,
                credit=credit,
                label=txn.notes or kind.value,
                sort_key=(txn.date, _SOURCE_ORDER[kind], txn.id, 0),
            )
        ]

    amount = invoice_amount(txn)
    label = invoice_label(txn)
    if kind is TransactionKind.SALE:
        postings = [_invoice_posting(txn, debit=amount, credit=ZERO, seq=0, label=label)]
        if txn.is_cash_sale:
            postings.append(_invoice_posting(txn, debit=ZERO, credit=amount, seq=1, label="Cash received"))
        return postings
    return [_invoice_posting(txn, debit=ZERO, credit=amount, seq=0, label=label)]


def _is_relevant(txn: MoneyTransaction, party_type: PartyType, party: ResolvedParty | None) -> bool:
    if txn.counterparty_type is not party_type:
        return False
    if party is None:
        return True
    return party.matches(txn.party_ref)


def build_ledger(
    party_type,
    party: ResolvedParty | None,
    transactions: Iterable[MoneyTransaction],
    date_range: DateRange | None = None,
) -> Ledger:
    party_type = PartyType.parse(party_type)
    if party is not None and party.party_type is not party_type:
        raise ValidationFailure(
            f"Party {party.display_name!r} is a {party.party_type.value}, not a {party_type.value}"
        )
    date_range = date_range or DateRange()

    postings: list[Posting] = []
    for txn in transactions:
        if _is_relevant(txn, party_type, party):
            postings.extend(postings_for(txn, party_type))
    postings.sort(key=lambda posting: posting.sort_key)

    opening_balance = ZERO
    in_range: list[Posting] = []
    for posting in postings:
        if date_range.is_before_start(posting.date):
            opening_balance += posting.debit - posting.credit
        elif not date_range.is_after_end(posting.date):
            in_range.append(posting)

    balance = opening_balance
    entries: list[LedgerEntry] = []
    for posting in in_range:
        balance += posting.debit - posting.credit
        entries.append(
            LedgerEntry(
                date=posting.date,
                kind=posting.kind,
                voucher=posting.voucher,
                debit=posting.debit,
                credit=posting.credit,
                balance=balance,
                label=posting.label,
                quantity=posting.quantity,
                weight=posting.weight,
                rate=posting.rate,
                lot=posting.lot,
            )
        )

    name = party.display_name if party is not None else ALL_PARTIES
    logger.debug("Built %s ledger for %r: %d entries", party_type.value, name, len(entries))
    return Ledger(party_type=party_type, party=name, opening_balance=opening_balance, entries=tuple(entries))
