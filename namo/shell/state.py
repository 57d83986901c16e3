"""
Session state machine.

The session is always in exactly one phase. Interrupts are orthogonal to
line dispatch: a Ctrl-C may arrive while waiting for a line or while a query
is running, and the phase it interrupted is restored if the user declines to
exit. A second Ctrl-C while the confirmation question is open is ignored.

    AWAITING_LINE   --query-->        DISPATCHING
    DISPATCHING     --done-->         AWAITING_LINE
    AWAITING_LINE   --exit keyword--> TERMINATED (0)
    AWAITING_LINE   --Ctrl-C-->       AWAITING_INTERRUPT_CONFIRMATION
    DISPATCHING     --Ctrl-C-->       AWAITING_INTERRUPT_CONFIRMATION
    AWAITING_INTERRUPT_CONFIRMATION --yes--> TERMINATED (0)
    AWAITING_INTERRUPT_CONFIRMATION --no-->  <interrupted phase>
    *               --fatal-->        TERMINATED (1)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

AFFIRMATIVE_RE = re.compile(r"^y(es)?$", re.IGNORECASE)


class SessionPhase(str, Enum):
    AWAITING_LINE = "awaiting_line"
    DISPATCHING = "dispatching"
    AWAITING_INTERRUPT_CONFIRMATION = "awaiting_interrupt_confirmation"
    TERMINATED = "terminated"


class InvalidTransition(RuntimeError):
    """Raised when an event is not allowed in the current phase."""


def is_affirmative(answer: Optional[str]) -> bool:
    return answer is not None and AFFIRMATIVE_RE.match(answer) is not None


@dataclass
class SessionState:
    prompt: str
    phase: SessionPhase = SessionPhase.AWAITING_LINE
    interrupted_phase: Optional[SessionPhase] = None
    exit_status: Optional[int] = None

    @property
    def terminated(self) -> bool:
        return self.phase is SessionPhase.TERMINATED

    @property
    def confirmation_pending(self) -> bool:
        return self.phase is SessionPhase.AWAITING_INTERRUPT_CONFIRMATION

    def _require(self, *phases: SessionPhase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise InvalidTransition(f"expected one of [{allowed}], session is {self.phase.value}")

    def begin_dispatch(self) -> None:
        self._require(SessionPhase.AWAITING_LINE)
        self.phase = SessionPhase.DISPATCHING

    def finish_dispatch(self) -> None:
        """Return to line input; if a confirmation is open, that is where it returns to."""
        if self.confirmation_pending and self.interrupted_phase is SessionPhase.DISPATCHING:
            self.interrupted_phase = SessionPhase.AWAITING_LINE
            return
        if self.terminated:
            return
        self._require(SessionPhase.DISPATCHING)
        self.phase = SessionPhase.AWAITING_LINE

    def interrupt(self) -> bool:
        """Open the exit confirmation. Returns False when the interrupt is ignored."""
        if self.phase not in (SessionPhase.AWAITING_LINE, SessionPhase.DISPATCHING):
            return False
        self.interrupted_phase = self.phase
        self.phase = SessionPhase.AWAITING_INTERRUPT_CONFIRMATION
        return True

    def resolve_interrupt(self, answer: Optional[str]) -> bool:
        """Apply the user's answer. Returns True when the session should end."""
        if self.terminated:
            return True
        self._require(SessionPhase.AWAITING_INTERRUPT_CONFIRMATION)
        if is_affirmative(answer):
            self.terminate(0)
            return True
        self.phase = self.interrupted_phase or SessionPhase.AWAITING_LINE
        self.interrupted_phase = None
        return False

    def terminate(self, status: int = 0) -> None:
        if self.terminated:
            return
        self.phase = SessionPhase.TERMINATED
        self.interrupted_phase = None
        self.exit_status = status
