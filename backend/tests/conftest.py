"""Pytest fixtures for PriceTrack backend tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pricetrack.config import Settings
from pricetrack.database import Base, get_db
from pricetrack.main import app
from pricetrack.records import DatedPrice, ProductRecord
from pricetrack.services.image_uploader import UploadStatus
from pricetrack.services.product_store import SqlProductStore
from pricetrack.services.unit_price import UnitPriceDeriver


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    # SQLite file per test, schema built from the ORM models
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def store(session_factory) -> SqlProductStore:
    return SqlProductStore(session_factory)


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        overrides_file=str(tmp_path / "ProductOverrides.txt"),
        urls_file=str(tmp_path / "Urls.txt"),
        image_upload_url="",
        always_upload_images=False,
        scheduler_enabled=False,
    )


def make_record(
    price="3.65",
    at: datetime = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
    *,
    id: str = "P1234",
    name: str = "Milk 2L",
    size: str = "2L",
    category: tuple[str, ...] = ("fresh-milk",),
) -> ProductRecord:
    """A freshly scraped record as the pipeline would build it."""
    price = Decimal(price)
    unit = UnitPriceDeriver().derive(size, price)
    return ProductRecord(
        id=id,
        name=name,
        size=size,
        current_price=price,
        category=category,
        source_site="paknsave.co.nz",
        price_history=(DatedPrice(date=at, price=price),),
        last_updated=at,
        last_checked=at,
        unit_price=unit.amount if unit else None,
        unit_name=unit.unit if unit else None,
        original_unit_quantity=unit.original_quantity if unit else None,
    )


class FakeStore:
    """In-memory product store."""

    def __init__(self, products=None):
        self.products = dict(products or {})
        self.writes = 0

    async def read_by_identifier(self, identifier, partition=None):
        from pricetrack.services.product_store import ProductNotFound

        try:
            return self.products[identifier]
        except KeyError:
            raise ProductNotFound(identifier) from None

    async def upsert(self, product):
        self.writes += 1
        self.products[product.id] = product


class FakeUploader:
    def __init__(self, status=UploadStatus.UPLOADED):
        self.status = status
        self.calls = []

    async def upload(self, image_url, product_id, product_name):
        self.calls.append((image_url, product_id, product_name))
        return self.status

    async def close(self):
        pass
