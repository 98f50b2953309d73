# src/core/history/__init__.py
"""
История поездок.
"""

from src.core.history.models import RideHistoryRecord
from src.core.history.service import RideHistoryService

__all__ = ["RideHistoryRecord", "RideHistoryService"]
