# src/core/calls/__init__.py
"""
Вызовы (запросы на поездку).
"""

from src.core.calls.models import Call
from src.core.calls.service import CallRegistry
from src.core.calls.state_machine import CallStateMachine

__all__ = ["Call", "CallRegistry", "CallStateMachine"]
