"""Quality tier to codec and rate-control mapping.

The 1-4 quality tier is ordinal and never reaches the engine directly. It
is resolved against one of two CRF scales: the default libx264 family and
the libvpx-vp9 family used for WebM, whose CRF ranges are not comparable
1:1. Animated image output takes no codec arguments at all.
"""

from dataclasses import dataclass
from enum import Enum

from .engine.interface import Capability

IMAGE_CONTAINERS = frozenset({"gif"})
IMAGE_SAMPLING_FPS = 10

FALLBACK_TIER = 2


class CodecFamily(str, Enum):
    """Video encoder families with independent CRF scales."""

    H264 = "libx264"
    VP9 = "libvpx-vp9"


# Lower CRF means higher quality and a larger file.
CRF_SCALES: dict[CodecFamily, dict[int, int]] = {
    CodecFamily.H264: {1: 28, 2: 23, 3: 18, 4: 15},
    CodecFamily.VP9: {1: 40, 2: 33, 3: 26, 4: 20},
}


@dataclass(frozen=True, slots=True)
class RateControl:
    """Resolved encoder and CRF value for a tier/container pair."""

    family: CodecFamily
    crf: int


def is_image_container(container: str) -> bool:
    return container in IMAGE_CONTAINERS


def codec_family(container: str) -> CodecFamily:
    """Return the encoder family for ``container``; WebM uses VP9, all else H.264."""
    if container == "webm":
        return CodecFamily.VP9
    return CodecFamily.H264


def rate_control_value(tier: int, family: CodecFamily) -> int:
    """Return the CRF for ``tier``, falling back to the tier-2 value when unmapped."""
    scale = CRF_SCALES[family]
    return scale.get(tier, scale[FALLBACK_TIER])


def map_quality(tier: int, container: str) -> RateControl | None:
    """Resolve a quality tier for a container.

    Returns:
        The encoder family and CRF, or None for animated image output.
    """
    if is_image_container(container):
        return None
    family = codec_family(container)
    return RateControl(family=family, crf=rate_control_value(tier, family))


def thread_count(capability: Capability) -> str:
    """Return the ``-threads`` value: ``0`` (auto) only for a confirmed multi-threaded build."""
    return "0" if capability is Capability.MULTI_THREADED else "1"


def codec_args(container: str, tier: int, capability: Capability) -> list[str]:
    """Build video codec and rate-control arguments.

    Args:
        container: Effective output container.
        tier: Quality tier 1-4.
        capability: Loaded engine capability, used for the thread hint.

    Returns:
        Codec arguments; empty for animated image output.
    """
    rate_control = map_quality(tier, container)
    if rate_control is None:
        return []

    threads = thread_count(capability)
    if rate_control.family is CodecFamily.VP9:
        return [
            "-c:v",
            CodecFamily.VP9.value,
            "-crf",
            str(rate_control.crf),
            "-b:v",
            "0",
            "-threads",
            threads,
            "-cpu-used",
            "5",
            "-row-mt",
            "1",
        ]

    args = [
        "-c:v",
        CodecFamily.H264.value,
        "-crf",
        str(rate_control.crf),
        "-preset",
        "fast",
        "-threads",
        threads,
        "-refs",
        "1",
        "-x264opts",
        "rc-lookahead=20",
    ]
    if container == "mp4":
        args.extend(["-movflags", "+faststart"])
    return args


def audio_args(container: str) -> list[str]:
    """Build audio arguments: disabled for images, Opus for WebM, AAC otherwise."""
    if is_image_container(container):
        return ["-an"]
    if container == "webm":
        return ["-c:a", "libopus"]
    return ["-c:a", "aac", "-b:a", "128k"]
