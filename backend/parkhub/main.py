"""
FastAPI app entrypoint.

Parking reservation backend: lots/spots, bookings, lifts. Auth is done by the gateway in front
of this service; routes only see the caller's id and role (see parkhub.api.deps).
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from parkhub.api.routes import admin, bookings, lifts, lots
from parkhub.config import get_site_layout, settings
from parkhub.core.errors import ParkingError, parking_error_handler
from parkhub.db.session import SessionLocal
from parkhub.services.lot_service import initialize_site

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    layout = get_site_layout()
    if settings.auto_init_site:
        db = SessionLocal()
        try:
            result = initialize_site(db, layout)
            logger.info("Site bootstrap on startup: %s", result)
        except Exception as e:
            db.rollback()
            logger.warning("Site bootstrap on startup failed: %s", e, exc_info=True)
        finally:
            db.close()
    logger.info(
        "Backend ready: blocks=%s slots_per_block=%s lifts_per_block=%s",
        layout.blocks_per_site, layout.slots_per_block, layout.lifts_per_block,
    )
    yield


app = FastAPI(title="ParkHub", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = settings.cors_origins or os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ParkingError, parking_error_handler)

app.include_router(lots.router, prefix="/api", tags=["lots"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(bookings.router, prefix="/api/bookings", tags=["bookings"])
app.include_router(lifts.router, prefix="/api/lifts", tags=["lifts"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "ParkHub API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict:
    layout = get_site_layout()
    return {
        "status": "ok",
        "site": {
            "blocks_per_site": layout.blocks_per_site,
            "slots_per_block": layout.slots_per_block,
            "lifts_per_block": layout.lifts_per_block,
            "total_slots": layout.total_slots,
        },
    }
