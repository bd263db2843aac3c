"""API routes for products and their price history."""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import String, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pricetrack.database import get_db
from pricetrack.models import Product

router = APIRouter(prefix="/products", tags=["products"])


class ProductResponse(BaseModel):
    id: str
    name: str
    size: str | None
    current_price: Decimal
    category: list[str]
    source_site: str | None
    last_updated: datetime
    last_checked: datetime
    unit_price: Decimal | None = None
    unit_name: str | None = None
    original_unit_quantity: Decimal | None = None

    model_config = {"from_attributes": True}


class PriceHistoryPoint(BaseModel):
    date: datetime
    price: Decimal

    model_config = {"from_attributes": True}


class PriceHistoryResponse(BaseModel):
    product: ProductResponse
    history: list[PriceHistoryPoint]


@router.get("", response_model=list[ProductResponse])
async def list_products(
    q: str | None = Query(None),
    category: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List stored products, optionally filtered by name and category."""
    stmt = select(Product)

    if q:
        stmt = stmt.where(func.lower(Product.name).contains(q.lower()))
    if category:
        # category is a JSON list, match the quoted element in its text form
        stmt = stmt.where(cast(Product.category, String).contains(f'"{category}"'))

    stmt = stmt.order_by(Product.name).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


async def _get_product_or_404(db: AsyncSession, product_id: str) -> Product:
    result = await db.execute(
        select(Product)
        .options(selectinload(Product.price_history))
        .where(Product.id == product_id)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, db: AsyncSession = Depends(get_db)):
    """Get a single product with its unit-price fields."""
    return await _get_product_or_404(db, product_id)


@router.get("/{product_id}/history", response_model=PriceHistoryResponse)
async def get_price_history(product_id: str, db: AsyncSession = Depends(get_db)):
    """Price history of a product, oldest first."""
    product = await _get_product_or_404(db, product_id)
    return PriceHistoryResponse(
        product=ProductResponse.model_validate(product),
        history=[PriceHistoryPoint.model_validate(point) for point in product.price_history],
    )
