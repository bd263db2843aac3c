"""Product and price-history models."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricetrack.database import Base


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    size: Mapped[str] = mapped_column(Text, default="")
    current_price: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    category: Mapped[list[str]] = mapped_column(JSON, default=list)
    source_site: Mapped[str] = mapped_column(String(100), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_checked: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    unit_name: Mapped[str | None] = mapped_column(String(10))
    original_unit_quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 3))

    price_history = relationship(
        "PricePoint",
        back_populates="product",
        order_by="PricePoint.id",
        cascade="all, delete-orphan",
    )


class PricePoint(Base):
    __tablename__ = "price_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("products.id"), nullable=False, index=True
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)

    product = relationship("Product", back_populates="price_history")
