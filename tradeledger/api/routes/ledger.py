from datetime import date

from fastapi import APIRouter, Depends, Query

from tradeledger.api.deps import Principal, get_service, require_permission
from tradeledger.schemas.ledger import LedgerEntryOut, LedgerOut, PartyOut, UnitCostOut
from tradeledger.services.reconciliation import ReconciliationService
from tradeledger.services.records import Basis, CostMode, four_places, whole

router = APIRouter(tags=["Ledger"])


@router.get("/ledger", response_model=LedgerOut)
def get_ledger(
    party_type: str = Query(...),
    party: str = Query(..., description='Party id, code, name, or "all"'),
    date_from: date | None = None,
    date_to: date | None = None,
    _: Principal = Depends(require_permission("ledger:view")),
    service: ReconciliationService = Depends(get_service),
):
    ledger = service.get_ledger(party_type, party, date_from, date_to)
    return LedgerOut(
        party_type=ledger.party_type.value,
        party=ledger.party,
        opening_balance=whole(ledger.opening_balance),
        total_debit=whole(ledger.total_debit),
        total_credit=whole(ledger.total_credit),
        closing_balance=whole(ledger.closing_balance),
        entries=[
            LedgerEntryOut(
                date=entry.date,
                kind=entry.kind.value,
                voucher=entry.voucher,
                label=entry.label,
                quantity=entry.quantity,
                weight=entry.weight,
                rate=entry.rate,
                lot=entry.lot,
                debit=whole(entry.debit),
                credit=whole(entry.credit),
                balance=whole(entry.balance),
            )
            for entry in ledger.entries
        ],
    )


@router.get("/parties/resolve", response_model=PartyOut)
def resolve_party(
    party_type: str = Query(...),
    query: str = Query(...),
    _: Principal = Depends(require_permission("ledger:view")),
    service: ReconciliationService = Depends(get_service),
):
    party = service.resolve_party(party_type, query)
    return PartyOut(
        party_type=party.party_type.value,
        query=party.query,
        display_name=party.display_name,
        aliases=sorted(party.aliases),
        phone=party.phone,
        whatsapp=party.whatsapp,
        matched=party.matched,
        party_ids=list(party.party_ids),
    )


@router.get("/costing/unit-cost", response_model=UnitCostOut)
def get_unit_cost(
    product: str = Query(...),
    store: str | None = None,
    lot: str | None = None,
    as_of: date | None = None,
    mode: str = "wac",
    basis: str = "Quantity",
    _: Principal = Depends(require_permission("reports:view")),
    service: ReconciliationService = Depends(get_service),
):
    cost_mode = CostMode.parse(mode)
    cost_basis = Basis.parse(basis)
    quote = service.quote_unit_cost(store, product, lot, as_of, cost_mode)
    return UnitCostOut(
        store=store or None,
        product=product,
        lot=lot or None,
        as_of=as_of,
        mode=cost_mode.value,
        basis=cost_basis.value,
        unit_cost=four_places(quote.for_basis(cost_basis)),
        per_quantity=four_places(quote.per_quantity),
        per_weight=four_places(quote.per_weight),
        source=quote.source.value,
    )
