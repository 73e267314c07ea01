"""Processing options and named presets.

``ProcessOptions`` is the immutable value describing one run: output
container, resolution preset, quality tier, frame rate, trim window and
aspect ratio. Sentinels follow the product's conventions: ``original``
means "keep what the source has", ``00:00:00`` means "no trim" and
``None`` frame rate means "unchanged".
"""

from dataclasses import dataclass
from enum import Enum

NO_TRIM = "00:00:00"
ORIGINAL_ASPECT_RATIO = "original"

SUPPORTED_FRAME_RATES = (60, 30, 24)
MIN_QUALITY = 1
MAX_QUALITY = 4
DEFAULT_QUALITY = 3

QUALITY_LABELS = {1: "Low", 2: "Medium", 3: "High", 4: "Best"}


class OutputFormat(str, Enum):
    """Output container. ``ORIGINAL`` keeps the source container."""

    ORIGINAL = "original"
    MP4 = "mp4"
    WEBM = "webm"
    MKV = "mkv"
    AVI = "avi"
    MOV = "mov"
    GIF = "gif"


class Resolution(str, Enum):
    """Named resolution presets.

    ``ORIGINAL`` and ``CUSTOM`` leave the frame size untouched.
    """

    ORIGINAL = "original"
    UHD_4K = "4k"
    FHD_1080P = "1080p"
    HD_720P = "720p"
    SD_480P = "480p"
    VERTICAL_1080P = "1080p-vertical"
    CUSTOM = "custom"


# -2 keeps the aspect ratio and rounds the companion dimension to an even value.
RESOLUTION_SCALES: dict[Resolution, str] = {
    Resolution.UHD_4K: "3840:-2",
    Resolution.FHD_1080P: "1920:-2",
    Resolution.HD_720P: "1280:-2",
    Resolution.SD_480P: "854:-2",
    Resolution.VERTICAL_1080P: "1080:1920",
}


@dataclass(frozen=True, slots=True)
class ProcessOptions:
    """Options for a single run.

    Attributes:
        format: Output container, or ``OutputFormat.ORIGINAL``.
        resolution: Resolution preset, or ``Resolution.ORIGINAL``.
        quality: Ordinal quality tier, 1 (smallest file) to 4 (best).
        frame_rate: Target frames per second, or None to keep the source rate.
        start_time: Trim start as ``HH:MM:SS``; ``00:00:00`` means no trim.
        end_time: Trim end as ``HH:MM:SS``; ``00:00:00`` means no trim.
        aspect_ratio: Named ratio such as ``16:9``; None or ``original`` means no crop.
    """

    format: OutputFormat = OutputFormat.MP4
    resolution: Resolution = Resolution.ORIGINAL
    quality: int = DEFAULT_QUALITY
    frame_rate: int | None = None
    start_time: str = NO_TRIM
    end_time: str = NO_TRIM
    aspect_ratio: str | None = None

    @property
    def wants_crop(self) -> bool:
        return (
            self.aspect_ratio is not None
            and self.aspect_ratio != ORIGINAL_ASPECT_RATIO
        )


class Preset(str, Enum):
    """Named option bundles for common destinations."""

    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    WHATSAPP = "whatsapp"
    CUSTOM = "custom"


PRESETS: dict[Preset, ProcessOptions] = {
    Preset.YOUTUBE: ProcessOptions(
        format=OutputFormat.MP4,
        resolution=Resolution.FHD_1080P,
        quality=3,
        frame_rate=30,
    ),
    Preset.INSTAGRAM: ProcessOptions(
        format=OutputFormat.MP4,
        resolution=Resolution.VERTICAL_1080P,
        quality=3,
        frame_rate=30,
    ),
    Preset.WHATSAPP: ProcessOptions(
        format=OutputFormat.MP4,
        resolution=Resolution.SD_480P,
        quality=2,
        frame_rate=24,
    ),
    Preset.CUSTOM: ProcessOptions(
        format=OutputFormat.ORIGINAL,
        resolution=Resolution.ORIGINAL,
        quality=3,
        frame_rate=None,
    ),
}


def options_for_preset(preset: Preset) -> ProcessOptions:
    """Return the options bundled with ``preset``.

    Presets never carry a trim window or an aspect ratio.
    """
    return PRESETS[preset]
