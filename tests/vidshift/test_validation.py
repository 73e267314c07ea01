"""Unit tests for pre-run validation."""

import pytest

from vidshift.exceptions import OptionsValidationError
from vidshift.options import ProcessOptions
from vidshift.validation import (
    format_trim_time,
    parse_trim_time,
    validate_input_file,
    validate_options,
    validate_trim,
)

MB = 1024 * 1024


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "seconds"),
    [("00:00:00", 0), ("00:01:30", 90), ("01:00:00", 3600), ("99:59:59", 359999)],
)
def test_parse_trim_time(value: str, seconds: int) -> None:
    """Strict HH:MM:SS strings parse to whole seconds."""
    assert parse_trim_time(value) == seconds


@pytest.mark.unit
@pytest.mark.parametrize("value", ["1:00:00", "00:60:00", "00:00:60", "abc", "00:00"])
def test_parse_trim_time_rejects_malformed(value: str) -> None:
    """Malformed or out-of-range components raise ValueError."""
    with pytest.raises(ValueError):
        parse_trim_time(value)


@pytest.mark.unit
def test_format_trim_time() -> None:
    """Seconds format back to zero-padded HH:MM:SS, truncating fractions."""
    assert format_trim_time(90.9) == "00:01:30"
    assert format_trim_time(3725) == "01:02:05"
    assert format_trim_time(-5) == "00:00:00"


@pytest.mark.unit
def test_validate_trim_accepts_window_inside_media() -> None:
    """A window ending within the media duration passes."""
    validate_trim("00:00:10", "00:01:30", media_duration=120.0)


@pytest.mark.unit
def test_validate_trim_no_trim_passes() -> None:
    """The sentinel on both sides means no trim at all."""
    validate_trim("00:00:00", "00:00:00", media_duration=5.0)


@pytest.mark.unit
def test_validate_trim_end_not_after_start() -> None:
    """An end at or before the start is rejected."""
    with pytest.raises(OptionsValidationError) as exc_info:
        validate_trim("00:00:30", "00:00:30")
    assert exc_info.value.field_name == "end_time"


@pytest.mark.unit
def test_validate_trim_end_past_duration() -> None:
    """An end beyond the media duration is rejected with the duration in the message."""
    with pytest.raises(OptionsValidationError) as exc_info:
        validate_trim("00:00:00", "00:02:01", media_duration=120.0)
    assert "00:02:00" in str(exc_info.value)


@pytest.mark.unit
def test_validate_trim_start_only_past_duration() -> None:
    """With no end, a start at or beyond the duration is rejected."""
    with pytest.raises(OptionsValidationError) as exc_info:
        validate_trim("00:02:00", "00:00:00", media_duration=120.0)
    assert exc_info.value.field_name == "start_time"


@pytest.mark.unit
def test_validate_trim_unknown_duration_skips_length_checks() -> None:
    """Without a duration only the format and ordering are checked."""
    validate_trim("10:00:00", "11:00:00", media_duration=None)


@pytest.mark.unit
def test_validate_trim_malformed_start() -> None:
    """A malformed start is reported against start_time."""
    with pytest.raises(OptionsValidationError) as exc_info:
        validate_trim("0:10", "00:00:20")
    assert exc_info.value.field_name == "start_time"
    assert exc_info.value.value == "0:10"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("options", "field_name"),
    [
        (ProcessOptions(quality=0), "quality"),
        (ProcessOptions(quality=5), "quality"),
        (ProcessOptions(frame_rate=25), "frame_rate"),
        (ProcessOptions(end_time="bad"), "end_time"),
    ],
)
def test_validate_options_rejects(options: ProcessOptions, field_name: str) -> None:
    """Each invalid option is reported by field name."""
    with pytest.raises(OptionsValidationError) as exc_info:
        validate_options(options)
    assert exc_info.value.field_name == field_name


@pytest.mark.unit
@pytest.mark.parametrize("frame_rate", [None, 24, 30, 60])
def test_validate_options_accepts_supported_frame_rates(frame_rate: int | None) -> None:
    """Supported frame rates and 'unchanged' pass."""
    validate_options(ProcessOptions(frame_rate=frame_rate))


@pytest.mark.unit
def test_validate_input_file_accepts_video() -> None:
    """A non-empty mp4 under the limit passes."""
    validate_input_file("a.mp4", 10 * MB, "video/mp4")


@pytest.mark.unit
@pytest.mark.parametrize(
    ("size_bytes", "mime_type", "field_name"),
    [
        (0, "video/mp4", "size_bytes"),
        (501 * MB, "video/mp4", "size_bytes"),
        (MB, "image/png", "mime_type"),
        (MB, None, "mime_type"),
    ],
)
def test_validate_input_file_rejects(
    size_bytes: int, mime_type: str | None, field_name: str
) -> None:
    """Empty, oversized and non-video inputs are rejected."""
    with pytest.raises(OptionsValidationError) as exc_info:
        validate_input_file("a", size_bytes, mime_type)
    assert exc_info.value.field_name == field_name


@pytest.mark.unit
def test_validate_input_file_custom_limits() -> None:
    """Limits and accepted types are configurable."""
    validate_input_file(
        "a.gif", 2 * MB, "image/gif", max_size_mb=2, accepted_mime_types={"image/gif"}
    )
    with pytest.raises(OptionsValidationError):
        validate_input_file("a.gif", 2 * MB + 1, "image/gif", max_size_mb=2)
