"""Fan-out of engine progress and log lines to observers."""

from collections.abc import Callable
from dataclasses import dataclass
import logging

from .engine.interface import EngineEvent, LogEvent, ProgressEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    """Whole-number completion percentage in [0, 100]."""

    percent: int


@dataclass(frozen=True, slots=True)
class LogLine:
    """A log line relayed verbatim from the engine."""

    message: str


ChannelMessage = ProgressUpdate | LogLine
ChannelObserver = Callable[[ChannelMessage], None]


def to_percent(fraction: float) -> int:
    """Clamp an engine fraction to [0, 1] and convert it to a rounded percentage."""
    if fraction != fraction:  # NaN
        return 0
    return round(min(max(fraction, 0.0), 1.0) * 100)


class ProgressChannel:
    """Relay engine events to observers as clamped percentages and log lines.

    The channel keeps the latest values so late observers can read the
    current state. Observer exceptions are logged and do not interrupt
    delivery to other observers or the engine.
    """

    def __init__(self) -> None:
        self._observers: list[ChannelObserver] = []
        self.percent = 0
        self.last_log = ""

    def subscribe(self, observer: ChannelObserver) -> Callable[[], None]:
        """Register ``observer``; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def reset(self) -> None:
        self.percent = 0
        self.last_log = ""

    def publish_progress(self, fraction: float) -> ProgressUpdate:
        update = ProgressUpdate(to_percent(fraction))
        self.percent = update.percent
        self._deliver(update)
        return update

    def publish_log(self, message: str) -> LogLine:
        line = LogLine(message)
        self.last_log = message
        self._deliver(line)
        return line

    def relay(self, event: EngineEvent) -> None:
        """Engine listener entry point."""
        match event:
            case ProgressEvent(progress=fraction):
                self.publish_progress(fraction)
            case LogEvent(message=message):
                self.publish_log(message)

    def _deliver(self, message: ChannelMessage) -> None:
        for observer in list(self._observers):
            try:
                observer(message)
            except Exception as e:
                logger.error(
                    "Progress observer raised.",
                    extra={"observer": repr(observer)},
                    exc_info=e,
                )
