# src/core/negotiation/state_machine.py
from src.common.constants import TransactionStatus


class TransactionStateMachine:
    ALLOWED_TRANSITIONS = {
        TransactionStatus.NEGOTIATING: [TransactionStatus.AGREED, TransactionStatus.CANCELLED],
        TransactionStatus.AGREED: [
            TransactionStatus.COMPLETED,
            TransactionStatus.CANCELLED,
            TransactionStatus.NEGOTIATING,
        ],
        TransactionStatus.COMPLETED: [],
        TransactionStatus.CANCELLED: [],
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = TransactionStatus(current_status)
            new = TransactionStatus(new_status)
            return new in TransactionStateMachine.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False
