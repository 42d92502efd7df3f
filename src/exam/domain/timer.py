from collections.abc import Callable

from src.config import ExamConfig
from src.exam.domain.models import TimerMode


class SessionTimer:
    """
    Tick-driven exam clock.

    COUNTDOWN starts at the test duration and fires `on_expire` exactly once
    when it reaches zero, then stops for good. COUNT_UP starts at zero and
    never expires. Ticks are ignored unless the timer is running, so a
    suspended timer cannot move or fire.
    """

    def __init__(
        self,
        mode: TimerMode,
        duration_seconds: int = 0,
        on_expire: Callable[[], None] | None = None,
    ) -> None:
        if mode == TimerMode.COUNTDOWN and duration_seconds <= 0:
            raise ValueError("countdown needs a positive duration")
        self.mode = mode
        self.duration_seconds = duration_seconds
        self.seconds = duration_seconds if mode == TimerMode.COUNTDOWN else 0
        self.on_expire = on_expire if mode == TimerMode.COUNTDOWN else None
        self._running = False
        self._expired = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_expired(self) -> bool:
        return self._expired

    @property
    def elapsed_seconds(self) -> int:
        if self.mode == TimerMode.COUNTDOWN:
            return self.duration_seconds - self.seconds
        return self.seconds

    @property
    def is_low_time(self) -> bool:
        return (
            self.mode == TimerMode.COUNTDOWN
            and self.seconds < ExamConfig.LOW_TIME_WARNING_SECONDS
        )

    def start(self) -> None:
        if not self._expired:
            self._running = True

    def suspend(self) -> None:
        self._running = False

    def tick(self) -> bool:
        """Advances one tick. Returns True only on the tick that expires the clock."""
        if not self._running:
            return False

        if self.mode == TimerMode.COUNT_UP:
            self.seconds += ExamConfig.TICK_SECONDS
            return False

        self.seconds = max(0, self.seconds - ExamConfig.TICK_SECONDS)
        if self.seconds > 0:
            return False

        # Stop before firing so a re-entrant tick from the callback is a no-op.
        self._running = False
        self._expired = True
        if self.on_expire:
            self.on_expire()
        return True
