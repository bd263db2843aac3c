"""Persistent product store.

Converts between :class:`~pricetrack.records.ProductRecord` values and the
``products`` / ``price_history`` tables.  Only two operations are needed by
the reconciler: read one product by identifier, and upsert one product.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from pricetrack.models import PricePoint, Product
from pricetrack.records import DatedPrice, ProductRecord

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Any persistence failure other than a missing product."""


class ProductNotFound(StoreError):
    """No product is stored under the requested identifier."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Product {identifier} not found")
        self.identifier = identifier


class ProductStore(Protocol):
    async def read_by_identifier(
        self, identifier: str, partition: str | None = None
    ) -> ProductRecord: ...

    async def upsert(self, product: ProductRecord) -> None: ...


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_record(row: Product) -> ProductRecord:
    return ProductRecord(
        id=row.id,
        name=row.name,
        size=row.size or "",
        current_price=row.current_price,
        category=tuple(row.category or ()),
        source_site=row.source_site,
        price_history=tuple(
            DatedPrice(date=as_utc(point.date), price=point.price)
            for point in row.price_history
        ),
        last_updated=as_utc(row.last_updated),
        last_checked=as_utc(row.last_checked),
        unit_price=row.unit_price,
        unit_name=row.unit_name,
        original_unit_quantity=row.original_unit_quantity,
    )


class SqlProductStore:
    """:class:`ProductStore` backed by async SQLAlchemy.

    The identifier is the primary key, so *partition* (the product name) is
    accepted and ignored.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from pricetrack.database import async_session

            session_factory = async_session
        self._session_factory = session_factory

    @staticmethod
    async def _load(session: AsyncSession, identifier: str) -> Product | None:
        stmt = (
            select(Product)
            .options(selectinload(Product.price_history))
            .where(Product.id == identifier)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def read_by_identifier(
        self, identifier: str, partition: str | None = None
    ) -> ProductRecord:
        try:
            async with self._session_factory() as session:
                row = await self._load(session, identifier)
                if row is None:
                    raise ProductNotFound(identifier)
                return to_record(row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read product {identifier}") from exc

    async def upsert(self, product: ProductRecord) -> None:
        """Insert or overwrite *product* in a single transaction.

        History rows are only ever appended: entries beyond the number
        already stored are added, existing rows are left untouched.
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await self._load(session, product.id)
                    if row is None:
                        row = Product(id=product.id)
                        session.add(row)

                    row.name = product.name
                    row.size = product.size
                    row.current_price = product.current_price
                    row.category = list(product.category)
                    row.source_site = product.source_site
                    row.last_updated = product.last_updated
                    row.last_checked = product.last_checked
                    row.unit_price = product.unit_price
                    row.unit_name = product.unit_name
                    row.original_unit_quantity = product.original_unit_quantity

                    stored = len(row.price_history)
                    for point in product.price_history[stored:]:
                        row.price_history.append(
                            PricePoint(date=point.date, price=point.price)
                        )
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to upsert product {product.id}") from exc
