# src/core/__init__.py
"""
Доменный слой (Core Domain).
Присутствие, вызовы, торг по цене и рейтинги поверх общего хранилища.
"""

from src.core.presence import PresenceRecord, PresenceRegistry
from src.core.calls import Call, CallRegistry
from src.core.negotiation import Transaction, NegotiationEngine
from src.core.ratings import RatingAggregate, RatingAggregator
from src.core.history import RideHistoryRecord, RideHistoryService
from src.core.geo import GeoRegion
from src.core.admin import AdminService

__all__ = [
    "PresenceRecord",
    "PresenceRegistry",
    "Call",
    "CallRegistry",
    "Transaction",
    "NegotiationEngine",
    "RatingAggregate",
    "RatingAggregator",
    "RideHistoryRecord",
    "RideHistoryService",
    "GeoRegion",
    "AdminService",
]
