from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from tradeledger.api.deps import get_service
from tradeledger.core.security import create_access_token
from tradeledger.models import Product, PurchaseInvoice, PurchaseInvoiceItem, StockSnapshot, Store
from tradeledger.services.reconciliation import ReconciliationService
from tradeledger.services.repository import SqlAlchemyTransactionStore


def bearer(role: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(f'{role}-user', role)}"}


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAuth:
    def test_missing_token_is_unauthorized(self, client, seeded):
        response = client.get("/ledger", params={"party_type": "Customer", "party": "Ali"})

        assert response.status_code == 401

    def test_garbage_token_is_unauthorized(self, client, seeded):
        response = client.get(
            "/ledger",
            params={"party_type": "Customer", "party": "Ali"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    def test_clerk_sees_ledgers_but_not_reports(self, client, seeded):
        ledger = client.get("/ledger", params={"party_type": "Customer", "party": "Ali"}, headers=bearer("clerk"))
        report = client.get("/reports/trial-balance", headers=bearer("clerk"))

        assert ledger.status_code == 200
        assert report.status_code == 403

    def test_access_token_header_is_accepted(self, client, seeded):
        token = create_access_token("tester", "accountant")
        response = client.get("/reports/trial-balance", headers={"x-access-token": token})

        assert response.status_code == 200


class TestLedgerRoutes:
    def test_customer_ledger(self, client, seeded, auth_headers):
        response = client.get(
            "/ledger",
            params={"party_type": "Customer", "party": "C-001", "date_to": "2024-01-31"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["party"] == "Ali (Ali Traders)"
        assert [entry["balance"] for entry in body["entries"]] == [600, 400]
        assert body["closing_balance"] == 400

    def test_opening_balance(self, client, seeded, auth_headers):
        response = client.get(
            "/ledger",
            params={"party_type": "Customer", "party": "Ali", "date_from": "2024-01-11"},
            headers=auth_headers,
        )

        body = response.json()
        assert body["opening_balance"] == 600
        assert len(body["entries"]) == 1

    def test_inverted_date_range(self, client, seeded, auth_headers):
        response = client.get(
            "/ledger",
            params={"party_type": "Customer", "party": "Ali", "date_from": "2024-02-01", "date_to": "2024-01-01"},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert response.json()["retryable"] is False

    def test_unknown_party_type(self, client, seeded, auth_headers):
        response = client.get("/ledger", params={"party_type": "Employee", "party": "Ali"}, headers=auth_headers)

        assert response.status_code == 422

    def test_resolve_party(self, client, seeded, auth_headers):
        response = client.get(
            "/parties/resolve",
            params={"party_type": "Customer", "query": "ali traders"},
            headers=auth_headers,
        )

        body = response.json()
        assert body["matched"] is True
        assert body["display_name"] == "Ali (Ali Traders)"
        assert body["whatsapp"] == "923001234567"
        assert "c-001" in body["aliases"]


class TestUnitCost:
    def test_weighted_average(self, client, seeded, auth_headers):
        response = client.get(
            "/costing/unit-cost",
            params={"product": "P1", "store": "S1", "basis": "Weight"},
            headers=auth_headers,
        )

        body = response.json()
        assert Decimal(body["unit_cost"]) == Decimal("10")
        assert body["source"] == "wac"

    def test_quantity_history_priced_per_kg_through_snapshot(self, client, session_factory, auth_headers):
        session = session_factory()
        store = Store(name="S1")
        board = Product(item="P2", product_type="Board")
        session.add_all([store, board])
        session.flush()
        session.add(
            PurchaseInvoice(
                invoice_number="PI-9",
                date=datetime(2024, 3, 1, 10, 0),
                supplier="Mill",
                total_amount=Decimal("500"),
                items=[
                    PurchaseInvoiceItem(
                        store="S1",
                        product="P2",
                        quantity=Decimal("10"),
                        rate=Decimal("50"),
                        rate_on="Quantity",
                    )
                ],
            )
        )
        session.add(StockSnapshot(store_id=store.id, product_id=board.id, quantity=Decimal("4"), weight=Decimal("8")))
        session.commit()
        session.close()

        response = client.get(
            "/costing/unit-cost",
            params={"product": "P2", "store": "S1", "basis": "Weight"},
            headers=auth_headers,
        )

        body = response.json()
        assert Decimal(body["per_quantity"]) == Decimal("50")
        assert Decimal(body["unit_cost"]) == Decimal("25")
        assert body["source"] == "cross_basis"

    def test_unknown_mode(self, client, seeded, auth_headers):
        response = client.get("/costing/unit-cost", params={"product": "P1", "mode": "fifo"}, headers=auth_headers)

        assert response.status_code == 422


class TestReportRoutes:
    def test_store_stock(self, client, seeded, auth_headers):
        response = client.get("/reports/store-stock", headers=auth_headers)

        [row] = response.json()
        assert row["source"] == "explicit"
        assert Decimal(row["current_weight"]) == Decimal("80")
        assert Decimal(row["derived_weight"]) == Decimal("79")
        assert row["below_minimum"] is True

    def test_trial_balance(self, client, seeded, auth_headers):
        body = client.get("/reports/trial-balance", params={"as_of": "2024-01-31"}, headers=auth_headers).json()

        assert body["total_debit"] == body["total_credit"]
        assert {"account": "Inventory", "debit": 800, "credit": 0} in body["accounts"]

    def test_balance_sheet(self, client, seeded, auth_headers):
        body = client.get("/reports/balance-sheet", params={"as_of": "2024-01-31"}, headers=auth_headers).json()

        assert body["total_assets"] == body["total_liabilities_and_equity"]

    def test_income_statement(self, client, seeded, auth_headers):
        body = client.get(
            "/reports/income-statement",
            params={"date_from": "2024-01-01", "date_to": "2024-01-31"},
            headers=auth_headers,
        ).json()

        assert (body["revenue"], body["cogs"], body["gross_profit"]) == (600, 400, 200)

    def test_receivables_and_payables(self, client, seeded, auth_headers):
        receivables = client.get("/reports/receivables", headers=auth_headers).json()
        payables = client.get("/reports/payables", headers=auth_headers).json()

        assert receivables == [
            {
                "customer": "Ali (Ali Traders)",
                "total_invoiced": 600,
                "amount_received": 300,
                "balance_due": 300,
                "phone": "0300-1234567",
                "whatsapp": "923001234567",
            }
        ]
        assert payables[0]["supplier"] == "Mill"
        assert payables[0]["balance_due"] == 730

    def test_profit_reports(self, client, seeded, auth_headers):
        [item] = client.get("/reports/item-profit", headers=auth_headers).json()
        [customer] = client.get("/reports/customer-profit", headers=auth_headers).json()

        assert (item["key"], item["revenue"], item["cost"], item["profit"]) == ("P1", 600, 200, 400)
        assert Decimal(item["margin"]) == Decimal("66.67")
        assert customer["key"] == "Ali (Ali Traders)"
        assert customer["invoices"] == 1

    def test_inventory_valuation(self, client, seeded, auth_headers):
        [row] = client.get("/reports/inventory-valuation", headers=auth_headers).json()

        assert row["value"] == 800
        assert row["source"] == "wac"

    def test_cash_flow(self, client, seeded, auth_headers):
        body = client.get("/reports/cash-flow", headers=auth_headers).json()

        assert [row["description"] for row in body["rows"]] == [
            "Receipt from Ali (Ali Traders) (Cash)",
            "Payment to Mill (Bank)",
        ]
        assert (body["total_inflow"], body["total_outflow"], body["net"]) == (200, 300, -100)


class BrokenSession:
    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    scalars = _fail
    execute = _fail


@pytest.fixture
def broken_client(client):
    from tradeledger.main import app

    app.dependency_overrides[get_service] = lambda: ReconciliationService(SqlAlchemyTransactionStore(BrokenSession()))
    yield client


class TestStoreUnavailable:
    def test_read_failure_is_retryable(self, broken_client, auth_headers):
        response = broken_client.get("/reports/trial-balance", headers=auth_headers)

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert response.json()["retryable"] is True
