# Package init for portfolio.models
from .base import Base as Base  # explicit re-export
from .incident import ListingIncident as ListingIncident
from .logging import AppErrorLog as AppErrorLog
