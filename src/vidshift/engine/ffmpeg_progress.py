"""Progress tracking from ffmpeg stderr output.

ffmpeg reports the input length once::

    Duration: 00:01:23.45, start: 0.000000, bitrate: 1205 kb/s

and then periodic status lines::

    frame= 1234 fps= 30 q=28.0 size= 1024kB time=00:00:41.20 bitrate=203.6kbits/s speed=2.0x

``ProgressTracker`` turns those into a completion fraction, taking the
``-ss``/``-to`` trim window of the invocation into account.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import re

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_TIME_RE = re.compile(r"time=\s*(-)?(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_FRAME_RE = re.compile(r"frame=\s*(\d+)")
_SPEED_RE = re.compile(r"speed=\s*([^\s]+)")


def _hms_to_seconds(hours: str, minutes: str, seconds: str) -> float:
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_duration_line(line: str) -> float | None:
    """Return the input duration in seconds from a ``Duration:`` line, if present."""
    match = _DURATION_RE.search(line)
    if not match:
        return None
    return _hms_to_seconds(*match.groups())


@dataclass
class FFmpegStatus:
    """Parsed ffmpeg status line."""

    out_time_seconds: float | None = None
    frame: int | None = None
    speed: str | None = None


def parse_status_line(line: str) -> FFmpegStatus | None:
    """Parse a ``frame=... time=...`` status line.

    Returns:
        Parsed status, or None if the line is not a status line.
    """
    if "time=" not in line:
        return None

    status = FFmpegStatus()
    time_match = _TIME_RE.search(line)
    if time_match:
        negative, *hms = time_match.groups()
        # ffmpeg reports slightly negative times before the first frame.
        status.out_time_seconds = 0.0 if negative else _hms_to_seconds(*hms)
    frame_match = _FRAME_RE.search(line)
    if frame_match:
        status.frame = int(frame_match.group(1))
    speed_match = _SPEED_RE.search(line)
    if speed_match and speed_match.group(1) != "N/A":
        status.speed = speed_match.group(1)
    return status


def _flag_seconds(args: Sequence[str], flag: str) -> float | None:
    try:
        index = list(args).index(flag)
        value = args[index + 1]
    except (ValueError, IndexError):
        return None
    parts = value.split(":")
    if len(parts) != 3:
        return None
    try:
        return _hms_to_seconds(*parts)
    except ValueError:
        return None


class ProgressTracker:
    """Convert ffmpeg stderr lines into completion fractions for one invocation."""

    def __init__(self, args: Sequence[str]):
        self._start = _flag_seconds(args, "-ss") or 0.0
        self._end = _flag_seconds(args, "-to")
        self._expected: float | None = None
        if self._end is not None and self._end > self._start:
            self._expected = self._end - self._start

    @property
    def expected_seconds(self) -> float | None:
        return self._expected

    def feed(self, line: str) -> float | None:
        """Consume one stderr line.

        Returns:
            The completion fraction in [0, 1] when the line is a status line
            and the expected output length is known, otherwise None.
        """
        duration = parse_duration_line(line)
        if duration is not None:
            if self._expected is None:
                self._expected = max(duration - self._start, 0.0)
            return None

        status = parse_status_line(line)
        if status is None or status.out_time_seconds is None:
            return None
        if not self._expected:
            return None
        return min(status.out_time_seconds / self._expected, 1.0)
