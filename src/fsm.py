from enum import Enum, auto

from src.exam.domain.models import SessionPhase
from src.shared.telemetry import Telemetry


class SessionAction(Enum):
    LOAD_SUCCESS = auto()  # Initial batch landed
    SUBMIT = auto()  # Student pressed submit
    TIME_UP = auto()  # Countdown reached zero
    PERSIST_SUCCESS = auto()  # Attempt + mistakes written
    PERSIST_FAILED = auto()  # Write failed, hand control back
    ABANDON = auto()  # Student navigated away


class SessionStateMachine:
    """
    Pure FSM Logic.
    Every producer (student input, timer expiry, persistence outcome) feeds
    actions through `transition`; anything not in the table is rejected.
    """

    def __init__(self, initial_state: SessionPhase = SessionPhase.NOT_STARTED):
        self._state = initial_state
        self.telemetry = Telemetry("SessionFSM")

    @property
    def current_state(self) -> SessionPhase:
        return self._state

    def transition(self, action: SessionAction) -> bool:
        """
        The Transition Table.
        Returns False (and leaves the phase untouched) for disallowed pairs.
        """
        previous = self._state

        match (self._state, action):
            case (SessionPhase.NOT_STARTED, SessionAction.LOAD_SUCCESS):
                self._state = SessionPhase.ACTIVE

            # Two submit producers, one gate
            case (SessionPhase.ACTIVE, SessionAction.SUBMIT | SessionAction.TIME_UP):
                self._state = SessionPhase.SUBMITTING

            case (SessionPhase.SUBMITTING, SessionAction.PERSIST_SUCCESS):
                self._state = SessionPhase.COMPLETED
            case (SessionPhase.SUBMITTING, SessionAction.PERSIST_FAILED):
                self._state = SessionPhase.ACTIVE

            case (SessionPhase.ACTIVE, SessionAction.ABANDON):
                self._state = SessionPhase.ABANDONED

            case _:
                self.telemetry.log_warning(
                    f"⛔ Rejected transition: {self._state.name} + {action.name}"
                )
                return False

        Telemetry.record_transition(previous.name, self._state.name)
        self.telemetry.log_info(
            f"🔄 FSM: {previous.name} --[{action.name}]--> {self._state.name}"
        )
        return True
