# src/core/ratings/__init__.py
"""
Рейтинги участников.
"""

from src.core.ratings.models import RatingAggregate
from src.core.ratings.service import RatingAggregator

__all__ = ["RatingAggregate", "RatingAggregator"]
