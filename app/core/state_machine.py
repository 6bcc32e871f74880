# app/core/state_machine.py
"""Lifecycle of a loan request (peminjaman), independent of storage and HTTP."""
from enum import Enum
from typing import Dict, Tuple

from app.core.exceptions import InvalidStateError, ValidationError
from app.models.enum import LoanStatus


class LoanAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    RETURN = "return"


TRANSITIONS: Dict[Tuple[LoanStatus, LoanAction], LoanStatus] = {
    (LoanStatus.PENDING, LoanAction.APPROVE): LoanStatus.DISETUJUI,
    (LoanStatus.PENDING, LoanAction.REJECT): LoanStatus.DITOLAK,
    (LoanStatus.DISETUJUI, LoanAction.RETURN): LoanStatus.SELESAI,
}

TERMINAL_STATES = frozenset({LoanStatus.DITOLAK, LoanStatus.SELESAI})

# Outcome keputusan admin -> aksi
DECISIONS: Dict[LoanStatus, LoanAction] = {
    LoanStatus.DISETUJUI: LoanAction.APPROVE,
    LoanStatus.DITOLAK: LoanAction.REJECT,
}


class LoanStateMachine:
    """Transition table lookup; raises InvalidStateError for anything not listed."""

    def __init__(self, transitions: Dict[Tuple[LoanStatus, LoanAction], LoanStatus] = None):
        self.transitions = transitions or TRANSITIONS

    def can(self, current: LoanStatus, action: LoanAction) -> bool:
        return (LoanStatus(current), LoanAction(action)) in self.transitions

    def next_state(self, current: LoanStatus, action: LoanAction) -> LoanStatus:
        current, action = LoanStatus(current), LoanAction(action)
        try:
            return self.transitions[(current, action)]
        except KeyError:
            if current in TERMINAL_STATES:
                raise InvalidStateError(
                    f"Peminjaman sudah berstatus '{current.value}' dan tidak dapat diubah lagi."
                ) from None
            raise InvalidStateError(
                f"Aksi '{action.value}' tidak berlaku untuk peminjaman berstatus '{current.value}'."
            ) from None

    def allowed_actions(self, current: LoanStatus):
        current = LoanStatus(current)
        return [action for (state, action) in self.transitions if state == current]

    @staticmethod
    def action_for_outcome(outcome: LoanStatus) -> LoanAction:
        try:
            return DECISIONS[LoanStatus(outcome)]
        except (KeyError, ValueError):
            raise ValidationError(f"Keputusan '{outcome}' tidak dikenal.") from None
