"""Pre-run validation of processing options and input files.

Everything here runs before the engine is touched. Failures raise
``OptionsValidationError`` and are recoverable without reloading the
engine. The compiler itself never validates; it silently drops what it
cannot map.
"""

from collections.abc import Collection
import logging
import re

from .exceptions import OptionsValidationError
from .options import (
    MAX_QUALITY,
    MIN_QUALITY,
    NO_TRIM,
    SUPPORTED_FRAME_RATES,
    ProcessOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_INPUT_SIZE_MB = 500
DEFAULT_ACCEPTED_MIME_TYPES = (
    "video/mp4",
    "video/webm",
    "video/avi",
    "video/x-msvideo",
    "video/quicktime",
    "video/x-matroska",
)

_TRIM_TIME_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2})$")


def parse_trim_time(value: str) -> int:
    """Parse a strict ``HH:MM:SS`` string into whole seconds.

    Args:
        value: Time string; hours may exceed 23, minutes and seconds may not exceed 59.

    Returns:
        Offset in seconds.

    Raises:
        ValueError: If the string is not a valid ``HH:MM:SS`` time.
    """
    match = _TRIM_TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid HH:MM:SS time: {value!r}")
    hours, minutes, seconds = (int(part) for part in match.groups())
    if minutes > 59 or seconds > 59:
        raise ValueError(f"Minutes and seconds must be below 60: {value!r}")
    return hours * 3600 + minutes * 60 + seconds


def format_trim_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS``, truncating fractions."""
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _parse_field(field_name: str, value: str) -> int:
    try:
        return parse_trim_time(value)
    except ValueError as e:
        raise OptionsValidationError(
            "Trim time must be in HH:MM:SS format.",
            field_name=field_name,
            value=value,
        ) from e


def validate_trim(
    start_time: str,
    end_time: str,
    media_duration: float | None = None,
) -> None:
    """Validate a trim window.

    The ``00:00:00`` sentinel disables that side of the window; an unset end
    means "until the end of the media".

    Args:
        start_time: Trim start as ``HH:MM:SS``.
        end_time: Trim end as ``HH:MM:SS``.
        media_duration: Source duration in seconds, when known.

    Raises:
        OptionsValidationError: For malformed times, an end not after the
            start, or a window reaching past the media duration.
    """
    start_s = 0 if start_time == NO_TRIM else _parse_field("start_time", start_time)

    if end_time == NO_TRIM:
        if media_duration is not None and start_s and start_s >= media_duration:
            raise OptionsValidationError(
                f"Start time cannot be at or beyond the media duration "
                f"({format_trim_time(media_duration)}).",
                field_name="start_time",
                value=start_time,
            )
        return

    end_s = _parse_field("end_time", end_time)
    if end_s <= start_s:
        raise OptionsValidationError(
            "End time must be after start time.",
            field_name="end_time",
            value=end_time,
        )
    if media_duration is not None and end_s > media_duration:
        raise OptionsValidationError(
            f"End time cannot exceed video duration "
            f"({format_trim_time(media_duration)}).",
            field_name="end_time",
            value=end_time,
        )


def validate_options(
    options: ProcessOptions, media_duration: float | None = None
) -> None:
    """Validate every option of a run.

    Raises:
        OptionsValidationError: On the first invalid option.
    """
    if not MIN_QUALITY <= options.quality <= MAX_QUALITY:
        raise OptionsValidationError(
            f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}.",
            field_name="quality",
            value=options.quality,
        )
    if (
        options.frame_rate is not None
        and options.frame_rate not in SUPPORTED_FRAME_RATES
    ):
        raise OptionsValidationError(
            "Unsupported frame rate.",
            field_name="frame_rate",
            value=options.frame_rate,
        )
    validate_trim(options.start_time, options.end_time, media_duration)


def validate_input_file(
    name: str,
    size_bytes: int,
    mime_type: str | None,
    max_size_mb: int = DEFAULT_MAX_INPUT_SIZE_MB,
    accepted_mime_types: Collection[str] = DEFAULT_ACCEPTED_MIME_TYPES,
) -> None:
    """Check an input file's size and declared type.

    Media content is not inspected.

    Raises:
        OptionsValidationError: If the file is empty, too large, or of an
            unaccepted type.
    """
    if size_bytes <= 0:
        raise OptionsValidationError(
            "Input file is empty.", field_name="size_bytes", value=size_bytes
        )
    max_size_bytes = max_size_mb * 1024 * 1024
    if size_bytes > max_size_bytes:
        raise OptionsValidationError(
            f"File too large. Maximum size is {max_size_mb}MB.",
            field_name="size_bytes",
            value=size_bytes,
        )
    if mime_type not in accepted_mime_types:
        raise OptionsValidationError(
            "Invalid file type. Please provide a video file.",
            field_name="mime_type",
            value=mime_type,
        )
    logger.debug(
        "Input file accepted.",
        extra={"file_name": name, "size_bytes": size_bytes, "mime_type": mime_type},
    )
