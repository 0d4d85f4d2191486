from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from portfolio.models.base import Base

STORED_NOT_LISTED = "stored_not_listed"
DELETED_STILL_LISTED = "deleted_still_listed"


class ListingIncident(Base):
    """A store mutation whose listing update failed; store and listing disagree
    until the reconcile job (or a retry) repairs it."""

    __tablename__ = "ListingIncident"
    IncidentID = Column(Integer, primary_key=True, autoincrement=True)
    OccurredAt = Column(DateTime, server_default=func.now())
    Kind = Column(String(32), nullable=False)
    Category = Column(String(32), nullable=False)
    Src = Column(String(1000), nullable=False)
    StoreKey = Column(String(1000), nullable=True)
    Message = Column(Text, nullable=True)
    RequestID = Column(String(64), nullable=True)
    Resolved = Column(Boolean, default=False, nullable=False)
    ResolvedAt = Column(DateTime, nullable=True)
