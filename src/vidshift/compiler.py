"""Compile processing options into an ffmpeg argument list.

``compile_command`` is pure and total: it never raises, and an option that
cannot be mapped (unknown aspect ratio, malformed trim time, unknown
resolution) is dropped on its own rather than aborting the compilation.
Combinations the engine cannot honour are left for the engine to reject
at run time.

Argument order::

    [-ss START] [-to END] -i INPUT [-vf crop,fps,scale] [-r FPS]
    <codec args> <audio args> -y output.<container>
"""

from pathlib import PurePosixPath
import re

from .aspect_ratio import aspect_ratio_crop_filter
from .engine.interface import Capability
from .options import NO_TRIM, RESOLUTION_SCALES, OutputFormat, ProcessOptions
from .quality import IMAGE_SAMPLING_FPS, audio_args, codec_args, is_image_container

DEFAULT_CONTAINER = "mp4"
OUTPUT_STEM = "output"

_TRIM_TIME_PATTERN = re.compile(r"^\d{2}:\d{2}:\d{2}$")


def is_trim_time(value: str | None) -> bool:
    """Return True when ``value`` is a strict ``HH:MM:SS`` time other than the no-trim sentinel."""
    if not value or value == NO_TRIM:
        return False
    return _TRIM_TIME_PATTERN.match(value) is not None


def input_extension(input_name: str) -> str:
    """Return the lower-cased extension of ``input_name``, or ``mp4`` when it has none."""
    suffix = PurePosixPath(input_name).suffix
    return suffix[1:].lower() if len(suffix) > 1 else DEFAULT_CONTAINER


def effective_container(input_name: str, output_format: OutputFormat | str) -> str:
    """Resolve the output container, deriving it from the input for ``ORIGINAL``."""
    fmt = (
        output_format.value
        if isinstance(output_format, OutputFormat)
        else str(output_format)
    ).lower()
    if not fmt or fmt == OutputFormat.ORIGINAL.value:
        return input_extension(input_name)
    return fmt


def output_file_name(input_name: str, output_format: OutputFormat | str) -> str:
    """Return the engine-side output name.

    Derived from the container only, never from the input stem, so a run
    whose input and output share a stem cannot collide.
    """
    return f"{OUTPUT_STEM}.{effective_container(input_name, output_format)}"


def build_filter_chain(options: ProcessOptions, container: str) -> list[str]:
    """Return the video filters in crop, image sampling rate, scale order."""
    filters: list[str] = []

    if options.wants_crop:
        crop = aspect_ratio_crop_filter(options.aspect_ratio)
        if crop:
            filters.append(crop)

    if is_image_container(container):
        filters.append(f"fps={IMAGE_SAMPLING_FPS}")

    scale = RESOLUTION_SCALES.get(options.resolution)
    if scale:
        filters.append(f"scale={scale}")

    return filters


def compile_command(
    input_name: str,
    options: ProcessOptions,
    capability: Capability = Capability.SINGLE_THREADED,
) -> list[str]:
    """Compile ``options`` into ffmpeg arguments for ``input_name``.

    Args:
        input_name: Engine-side name of the input file.
        options: The run's processing options.
        capability: Loaded engine capability; only a confirmed multi-threaded
            build gets automatic thread detection.

    Returns:
        The ordered argument list, without the ffmpeg executable itself.
    """
    args: list[str] = []

    # Trim at demux time, ahead of the input declaration.
    if is_trim_time(options.start_time):
        args.extend(["-ss", options.start_time])
    if is_trim_time(options.end_time):
        args.extend(["-to", options.end_time])

    args.extend(["-i", input_name])

    container = effective_container(input_name, options.format)

    filters = build_filter_chain(options, container)
    if filters:
        args.extend(["-vf", ",".join(filters)])

    # Image output already fixes its rate in the filter chain.
    if options.frame_rate is not None and not is_image_container(container):
        args.extend(["-r", str(options.frame_rate)])

    args.extend(codec_args(container, options.quality, capability))
    args.extend(audio_args(container))

    args.extend(["-y", output_file_name(input_name, options.format)])
    return args
