from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio.models.incident import ListingIncident

audit = logging.getLogger("audit")
logger = logging.getLogger(__name__)


def record_incident(
    db: Optional[Session],
    kind: str,
    category: str,
    src: str,
    store_key: Optional[str] = None,
    message: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Optional[ListingIncident]:
    """Log and persist a store/listing disagreement.

    The warning is always emitted; the DB row is best-effort so that a broken
    database never turns a partial outcome into an opaque 500.
    """
    audit.warning(
        "listing.partial",
        extra={
            "kind": kind,
            "category": category,
            "src": src,
            "store_key": store_key,
            "error": message,
            "request_id": request_id,
        },
    )
    if db is None:
        return None
    row = ListingIncident(
        Kind=kind,
        Category=category,
        Src=src,
        StoreKey=store_key,
        Message=message,
        RequestID=request_id,
        Resolved=False,
    )
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to persist listing incident")
        return None


def list_incidents(db: Session, resolved: Optional[bool] = None, limit: int = 100) -> List[ListingIncident]:
    q = db.query(ListingIncident)
    if resolved is not None:
        q = q.filter(ListingIncident.Resolved == resolved)
    return q.order_by(ListingIncident.IncidentID.desc()).limit(max(1, min(limit, 500))).all()


def resolve_incidents(db: Session, category: str, srcs: List[str]) -> int:
    """Mark open incidents for the given srcs as resolved; returns rows updated."""
    if not srcs:
        return 0
    updated = (
        db.query(ListingIncident)
        .filter(
            ListingIncident.Category == category,
            ListingIncident.Src.in_(srcs),
            ListingIncident.Resolved.is_(False),
        )
        .update(
            {"Resolved": True, "ResolvedAt": datetime.now(timezone.utc).replace(tzinfo=None)},
            synchronize_session=False,
        )
    )
    db.commit()
    return int(updated or 0)


def incident_to_dict(row: ListingIncident) -> dict:
    occurred = getattr(row, "OccurredAt", None)
    return {
        "id": int(row.IncidentID),
        "occurred_at": occurred.isoformat() if occurred else None,
        "kind": row.Kind,
        "category": row.Category,
        "src": row.Src,
        "store_key": row.StoreKey,
        "message": row.Message,
        "request_id": row.RequestID,
        "resolved": bool(row.Resolved),
    }
