"""
Public inventory API: lots (with lazy spot fill and availability), spots, site summary.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from parkhub.db.session import get_db
from parkhub.services.allocation_service import get_lot, spot_to_dict
from parkhub.services.lot_service import list_lots, list_spots, lot_detail, parking_stats, spot_detail

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/lots")
def get_lots(
    db: Session = Depends(get_db),
    query: str | None = Query(None, description="Search by name, address or block code"),
) -> list[dict[str, Any]]:
    """List lots with availability 'free/capacity'. Missing spot rows are created on the way."""
    return list_lots(db, query)


@router.get("/lots/{lot_id}")
def get_lot_detail(lot_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    return lot_detail(db, lot_id)


@router.get("/lots/{lot_id}/spots")
def get_lot_spots(lot_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    lot = get_lot(db, lot_id)
    return {"lot_id": lot.id, "spots": [spot_to_dict(s) for s in list_spots(db, lot_id)]}


@router.get("/spots/{spot_id}")
def get_spot(spot_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Spot with its lot and the vehicle currently holding it."""
    return spot_detail(db, spot_id)


@router.get("/summary")
def get_summary(db: Session = Depends(get_db)) -> dict[str, int]:
    stats = parking_stats(db)
    return {"occupied_spots": stats["occupied"], "available_spots": stats["available"], "total_spots": stats["total"]}
