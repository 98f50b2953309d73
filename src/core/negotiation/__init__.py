# src/core/negotiation/__init__.py
"""
Торг по цене.
Модель сделки, машина состояний и движок предложений.
"""

from src.core.negotiation.models import Transaction
from src.core.negotiation.state_machine import TransactionStateMachine
from src.core.negotiation.service import NegotiationEngine

__all__ = ["Transaction", "TransactionStateMachine", "NegotiationEngine"]
