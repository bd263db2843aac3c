"""PriceTrack API - Main FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pricetrack.api import products, scraping
from pricetrack.config import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.scheduler_enabled:
        from pricetrack.jobs.scheduler import start_scheduler

        scheduler = start_scheduler()
        app.state.scheduler = scheduler
        yield
        scheduler.shutdown()
    else:
        app.state.scheduler = None
        yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Supermarket price tracking with daily price history",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(products.router, prefix="/api/v1")
app.include_router(scraping.router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {
        "app": "PriceTrack",
        "version": "1.0.0",
        "docs": "/docs",
    }
