# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ActorRole(str, Enum):
    """Роли участников."""
    DRIVER = "Driver"
    CUSTOMER = "Customer"

    @property
    def counterpart(self) -> "ActorRole":
        """Противоположная сторона сделки."""
        return ActorRole.CUSTOMER if self is ActorRole.DRIVER else ActorRole.DRIVER


class PaymentMethod(str, Enum):
    """Способы оплаты."""
    CASH = "Cash"
    CLICK = "Click"
    PAYME = "Payme"


class CallStatus(str, Enum):
    """Статусы вызова."""
    OPEN = "Open"
    ACCEPTED = "Accepted"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TransactionStatus(str, Enum):
    """Статусы сделки (торга по цене)."""
    NEGOTIATING = "Negotiating"
    AGREED = "Agreed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Collection(str, Enum):
    """Корневые узлы хранилища документов."""
    LOCATIONS = "locations"
    CALLS = "calls"
    TRANSACTIONS = "transactions"
    USERS = "users"
    RIDE_HISTORY = "ride_history"


# Терминальные статусы
CALL_TERMINAL_STATUSES = frozenset({CallStatus.COMPLETED, CallStatus.CANCELLED})
TRANSACTION_TERMINAL_STATUSES = frozenset({TransactionStatus.COMPLETED, TransactionStatus.CANCELLED})

# Узлы, очищаемые административным сбросом
RESETTABLE_COLLECTIONS = (Collection.CALLS, Collection.TRANSACTIONS)
