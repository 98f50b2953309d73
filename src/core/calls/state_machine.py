# src/core/calls/state_machine.py
from src.common.constants import CallStatus


class CallStateMachine:
    ALLOWED_TRANSITIONS = {
        CallStatus.OPEN: [CallStatus.ACCEPTED, CallStatus.CANCELLED],
        CallStatus.ACCEPTED: [CallStatus.COMPLETED, CallStatus.CANCELLED],
        CallStatus.COMPLETED: [],
        CallStatus.CANCELLED: [],
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = CallStatus(current_status)
            new = CallStatus(new_status)
            return new in CallStateMachine.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False
