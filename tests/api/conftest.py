from datetime import datetime
from decimal import Decimal

import pytest

from tradeledger.models import (
    Party,
    PartyCategory,
    Payment,
    Product,
    Production,
    ProductionMaterial,
    ProductionOutput,
    PurchaseInvoice,
    PurchaseInvoiceItem,
    Receipt,
    SaleInvoice,
    SaleInvoiceItem,
    StockSnapshot,
    Store,
)


@pytest.fixture
def seeded(session_factory):
    """A month of books: one purchase, one sale, a receipt, a payment and a production run."""
    session = session_factory()
    try:
        main_store = Store(name="S1", description="Main godown")
        old_store = Store(name="S2", is_active=False)
        reel = Product(
            item="P1",
            description="Kraft 80g",
            category="Reels",
            product_type="Reel",
            cost_rate_qty=Decimal("40"),
            min_stock_level=Decimal("10"),
        )
        session.add_all(
            [
                main_store,
                old_store,
                reel,
                Party(
                    party_type=PartyCategory.CUSTOMER,
                    code="C-001",
                    person="Ali",
                    description="Ali Traders",
                    mobile="0300-1234567",
                ),
                Party(party_type=PartyCategory.SUPPLIER, code="S-001", person="Mill"),
            ]
        )
        session.flush()

        session.add(
            PurchaseInvoice(
                invoice_number="PI-1",
                date=datetime(2024, 1, 2, 10, 0),
                supplier="Mill",
                total_amount=Decimal("1000"),
                freight=Decimal("50"),
                discount=Decimal("20"),
                items=[
                    PurchaseInvoiceItem(
                        store="S1",
                        product="P1",
                        quantity=Decimal("10"),
                        weight=Decimal("100"),
                        rate=Decimal("10"),
                        rate_on="Weight",
                    )
                ],
            )
        )
        session.add(
            SaleInvoice(
                invoice_number="SI-1",
                date=datetime(2024, 1, 10, 11, 0),
                customer="Ali",
                payment_type="Credit",
                total_amount=Decimal("600"),
                net_amount=Decimal("600"),
                received=Decimal("100"),
                items=[
                    SaleInvoiceItem(
                        store="S1",
                        product="P1",
                        description="Kraft 80g",
                        quantity=Decimal("2"),
                        weight=Decimal("20"),
                        rate=Decimal("30"),
                        rate_on="Weight",
                    )
                ],
            )
        )
        session.add(
            Receipt(
                voucher_number="RV-1",
                date=datetime(2024, 1, 12, 9, 0),
                party_type=PartyCategory.CUSTOMER,
                party_ref="1",
                mode="Cash",
                amount=Decimal("200"),
            )
        )
        session.add(
            Payment(
                voucher_number="PV-1",
                date=datetime(2024, 1, 15, 9, 0),
                party_type=PartyCategory.SUPPLIER,
                party_ref="Mill",
                mode="Bank",
                amount=Decimal("300"),
            )
        )
        session.add(
            Production(
                production_number="PR-1",
                date=datetime(2024, 1, 20, 8, 0),
                materials=[
                    ProductionMaterial(
                        store_id=main_store.id,
                        product_id=reel.id,
                        quantity=Decimal("1"),
                        weight=Decimal("10"),
                    )
                ],
                outputs=[
                    ProductionOutput(
                        store_id=main_store.id,
                        product_id=reel.id,
                        quantity=Decimal("1"),
                        weight=Decimal("9"),
                    )
                ],
            )
        )
        session.add(
            StockSnapshot(
                store_id=main_store.id,
                product_id=reel.id,
                quantity=Decimal("8"),
                weight=Decimal("80"),
            )
        )
        session.commit()
    finally:
        session.close()
