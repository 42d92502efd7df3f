import inspect
import logging
import sys
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from functools import wraps
from typing import Any, TypeVar, cast

# --- Prometheus Imports ---
from prometheus_client import REGISTRY, Counter, Histogram

# --- Context for Correlation IDs ---
correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="system")

# --- Prometheus Metric Definitions ---
DURATION_METRIC = "exam_method_duration_seconds"
TRANSITION_METRIC = "exam_session_transitions"

METHOD_DURATION: Histogram
SESSION_TRANSITIONS: Counter


def _registered(name: str) -> Any:
    # Re-imports (test collection, hot reload) find the collector already present.
    return REGISTRY._names_to_collectors[name]


try:
    METHOD_DURATION = Histogram(
        DURATION_METRIC, "Time spent in method", ["component", "method"]
    )
except ValueError:
    METHOD_DURATION = cast(Histogram, _registered(DURATION_METRIC))

try:
    SESSION_TRANSITIONS = Counter(
        TRANSITION_METRIC,
        "Accepted exam session phase transitions",
        ["from_phase", "to_phase"],
    )
except ValueError:
    SESSION_TRANSITIONS = cast(Counter, _registered(TRANSITION_METRIC + "_total"))

F = TypeVar("F", bound=Callable[..., Any])


def _observe(self_obj: Any, func_name: str, metric_name: str, start: float) -> float:
    duration = time.perf_counter() - start
    component = self_obj.__class__.__name__ if self_obj is not None else "Unknown"
    METHOD_DURATION.labels(component=component, method=func_name).observe(duration)
    return round(duration * 1000, 2)


def measure_time(metric_name: str) -> Callable[[F], F]:
    """
    Decorator for timing methods + logging.
    Works for plain and coroutine methods; args[0] is expected to be 'self'
    and its optional 'telemetry' attribute receives the log line.
    """

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                self_obj = args[0] if args else None
                telemetry = getattr(self_obj, "telemetry", None)
                start = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    ms = _observe(self_obj, func.__name__, metric_name, start)
                    if telemetry:
                        telemetry.log_error(f"💥 Failed: {metric_name}", e, duration_ms=ms)
                    raise
                ms = _observe(self_obj, func.__name__, metric_name, start)
                if telemetry:
                    telemetry.log_info(f"⏱️ {metric_name}", duration_ms=ms)
                return result

            return cast(F, async_wrapper)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            self_obj = args[0] if args else None
            telemetry = getattr(self_obj, "telemetry", None)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                ms = _observe(self_obj, func.__name__, metric_name, start)
                if telemetry:
                    telemetry.log_error(f"💥 Failed: {metric_name}", e, duration_ms=ms)
                raise
            ms = _observe(self_obj, func.__name__, metric_name, start)
            if telemetry:
                telemetry.log_info(f"⏱️ {metric_name}", duration_ms=ms)
            return result

        return cast(F, wrapper)

    return decorator


class Telemetry:
    """
    Facade for Logs, Metrics, and Tracing.
    """

    def __init__(self, component_name: str) -> None:
        self.component = component_name
        self.logger: logging.Logger
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Initializes the logger. Safe to call multiple times."""
        self.logger = logging.getLogger(self.component)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @staticmethod
    def start_trace() -> str:
        c_id = str(uuid.uuid4())[:8]
        correlation_id_ctx.set(c_id)
        return c_id

    @staticmethod
    def get_trace_id() -> str:
        return correlation_id_ctx.get()

    @staticmethod
    def record_transition(from_phase: str, to_phase: str) -> None:
        SESSION_TRANSITIONS.labels(from_phase=from_phase, to_phase=to_phase).inc()

    def log_info(self, event: str, **kwargs: Any) -> None:
        self.logger.info(f"[{self.get_trace_id()}] {event} | {kwargs}")

    def log_warning(self, event: str, **kwargs: Any) -> None:
        self.logger.warning(f"[{self.get_trace_id()}] ⚠️ {event} | {kwargs}")

    def log_error(self, event: str, error: Exception, **kwargs: Any) -> None:
        msg = f"[{self.get_trace_id()}] ❌ {event} | Error: {str(error)} | {kwargs}"
        self.logger.error(msg, exc_info=True)
