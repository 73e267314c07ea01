"""Debug mode that prints the engine arguments for the configured job.

Nothing is loaded or executed; this only exercises option merging and
the command compiler.
"""

import logging
import shlex

from ..compiler import compile_command, input_extension
from ..config import AppSettings
from ..engine import Capability

logger = logging.getLogger(__name__)


def run_debug_compile_mode(settings: AppSettings) -> list[str]:
    """Compile the configured job for both engine capabilities and log the result.

    Args:
        settings: Application settings containing the job configuration.

    Returns:
        The arguments compiled for the single-threaded engine.
    """
    options = settings.job.to_process_options()
    source_name = settings.job.input_file.name if settings.job.input_file else ""
    input_name = f"input.{input_extension(source_name)}"
    logger.info(
        "Compiling job.",
        extra={
            "input_name": input_name,
            "format": options.format.value,
            "resolution": options.resolution.value,
            "quality": options.quality,
            "frame_rate": options.frame_rate,
            "aspect_ratio": options.aspect_ratio,
        },
    )

    single = compile_command(input_name, options, Capability.SINGLE_THREADED)
    multi = compile_command(input_name, options, Capability.MULTI_THREADED)
    logger.info(f"single-threaded: ffmpeg {shlex.join(single)}")
    logger.info(f"multi-threaded:  ffmpeg {shlex.join(multi)}")
    return single
