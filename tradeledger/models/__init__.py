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
    StockSnapshot,
)

__all__ = [
    "Party",
    "PartyCategory",
    "Payment",
    "Product",
    "Production",
    "ProductionMaterial",
    "ProductionOutput",
    "PurchaseInvoice",
    "PurchaseInvoiceItem",
    "Receipt",
    "SaleInvoice",
    "SaleInvoiceItem",
    "StockSnapshot",
    "Store",
]
