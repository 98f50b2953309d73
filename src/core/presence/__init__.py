# src/core/presence/__init__.py
"""
Присутствие участников.
"""

from src.core.presence.models import PresenceRecord
from src.core.presence.service import PresenceRegistry

__all__ = ["PresenceRecord", "PresenceRegistry"]
