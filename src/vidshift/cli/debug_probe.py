"""Debug mode for testing engine loading and ffprobe directly."""

import logging

from ..config import AppSettings
from ..engine import FFmpegEngineLoader, detect_host_environment
from ..exceptions import EngineLoadError, FFProbeError
from ..ffprobe import FFProbe
from ..session import EngineSession

logger = logging.getLogger(__name__)


async def run_debug_probe_mode(settings: AppSettings) -> None:
    """Load the engine, report its capability, and probe the configured input.

    Args:
        settings: Application settings containing engine paths and the job.
    """
    host = detect_host_environment(settings.enable_multithreading)
    loader = FFmpegEngineLoader(
        ffmpeg_path=settings.ffmpeg_path,
        single_thread_path=settings.ffmpeg_single_thread_path,
        workspace_root=settings.workspace_dir,
    )
    logger.info(
        "Host environment detected.",
        extra={
            "shared_memory_available": host.shared_memory_available,
            "cpu_count": host.cpu_count,
        },
    )

    async with EngineSession(loader, host) as session:
        try:
            capability = await session.load()
        except EngineLoadError as e:
            logger.error("Engine load failed.", exc_info=e)
        else:
            logger.info(
                "Engine loaded.",
                extra={
                    "capability": capability.value,
                    "binary": loader.binary_for(capability),
                },
            )

    input_file = settings.job.input_file
    if input_file is None:
        logger.info("No input file configured; skipping ffprobe.")
        return

    ffprobe = FFProbe(settings.ffprobe_path)
    try:
        duration = await ffprobe.get_duration_seconds(input_file)
        codec = await ffprobe.get_video_codec(input_file)
    except FFProbeError as e:
        logger.error(
            "ffprobe failed.", extra={"input_file": str(input_file)}, exc_info=e
        )
        return
    logger.info(
        "Input probed.",
        extra={
            "input_file": str(input_file),
            "duration_seconds": duration,
            "video_codec": codec,
        },
    )
