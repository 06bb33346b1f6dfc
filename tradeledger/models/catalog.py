from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tradeledger.db.database import Base


class PartyCategory(str, Enum):
    CUSTOMER = "Customer"
    SUPPLIER = "Supplier"


class Store(Base):
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    item: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    brand: Mapped[str | None] = mapped_column(String(120), nullable=True)
    category: Mapped[str | None] = mapped_column(String(120), index=True, nullable=True)
    product_type: Mapped[str] = mapped_column(String(24), default="Reel", nullable=False)
    length: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    width: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    grams: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    cost_rate_qty: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=0, nullable=False)
    sale_rate_qty: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=0, nullable=False)
    sale_rate_kg: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=0, nullable=False)
    min_stock_level: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=0, nullable=False)
    max_stock_level: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Party(Base):
    __tablename__ = "parties"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    party_type: Mapped[PartyCategory] = mapped_column(SQLEnum(PartyCategory), index=True, nullable=False)
    code: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    person: Mapped[str | None] = mapped_column(String(160), index=True, nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(40), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
