"""Default mode implementation for vidshift.

This module processes the configured job end to end: load the engine,
read and probe the input, run it, and save the output next to the
configured output directory.
"""

import asyncio
import logging
from pathlib import Path

import aiofiles.os

from ..config import AppSettings
from ..engine import FFmpegEngineLoader, detect_host_environment
from ..exceptions import (
    EngineLoadError,
    ExecutionError,
    FFProbeError,
    OptionsValidationError,
    RunCancelledError,
)
from ..ffprobe import FFProbe
from ..output import download_file_name
from ..session import EngineSession, InputFile, SessionState

logger = logging.getLogger(__name__)


async def _probe_duration(ffprobe: FFProbe, input_path: Path) -> float | None:
    """Return the source duration, or None when ffprobe cannot read it.

    An unknown duration only means the trim window is not checked against
    the media length.
    """
    try:
        duration = await ffprobe.get_duration_seconds(input_path)
        codec = await ffprobe.get_video_codec(input_path)
    except FFProbeError as e:
        logger.warning(
            "Could not probe input; trim window will not be checked against its duration.",
            extra={"input_file": str(input_path), "stderr": e.stderr},
        )
        return None
    logger.debug(
        "Input probed.",
        extra={
            "input_file": str(input_path),
            "duration_seconds": duration,
            "video_codec": codec,
        },
    )
    return duration


def _log_progress(state: SessionState) -> None:
    logger.debug(
        "Session state changed.",
        extra={"phase": state.phase.value, "progress": state.progress},
    )


async def default(settings: AppSettings) -> Path:
    """Main async entry point for default mode.

    Args:
        settings: Application settings object containing configuration.

    Returns:
        Path of the saved output.

    Raises:
        SystemExit: With status 1 when the job could not be completed.
    """
    input_path = settings.job.input_file
    if input_path is None:
        logger.error(
            "No input file configured.",
            extra={"config_file": str(settings.config_file)},
        )
        raise SystemExit(1)

    logger.debug(
        "Starting vidshift in default mode.",
        extra={"input_file": str(input_path), "preset": settings.job.preset},
    )

    options = settings.job.to_process_options()
    ffprobe = FFProbe(settings.ffprobe_path)
    loader = FFmpegEngineLoader(
        ffmpeg_path=settings.ffmpeg_path,
        single_thread_path=settings.ffmpeg_single_thread_path,
        workspace_root=settings.workspace_dir,
    )
    host = detect_host_environment(settings.enable_multithreading)

    try:
        input_file = await InputFile.from_path(input_path)
    except OSError as e:
        logger.error(
            "Failed to read input file.",
            extra={"input_file": str(input_path)},
            exc_info=e,
        )
        raise SystemExit(1) from e
    media_duration = await _probe_duration(ffprobe, input_path)

    async with EngineSession(
        loader,
        host,
        max_input_size_mb=settings.max_input_size_mb,
        accepted_mime_types=tuple(settings.accepted_mime_types),
    ) as session:
        session.subscribe(_log_progress)
        try:
            await session.load()
            output = await asyncio.wait_for(
                session.run(input_file, options, media_duration),
                timeout=settings.run_timeout_seconds,
            )
        except OptionsValidationError as e:
            logger.error(
                "Invalid job.",
                extra={"field_name": e.field_name, "value": e.value},
                exc_info=e,
            )
            raise SystemExit(1) from e
        except EngineLoadError as e:
            logger.error("Engine could not be loaded.", exc_info=e)
            raise SystemExit(1) from e
        except TimeoutError as e:
            logger.error(
                "Run timed out.",
                extra={"timeout_seconds": settings.run_timeout_seconds},
            )
            raise SystemExit(1) from e
        except RunCancelledError as e:
            logger.warning("Run cancelled.", extra={"run_id": e.run_id})
            raise SystemExit(1) from e
        except ExecutionError as e:
            logger.error(
                "Run failed.",
                extra={"run_id": e.run_id, "last_log": e.last_log, "exit_code": e.exit_code},
                exc_info=e,
            )
            raise SystemExit(1) from e

        await aiofiles.os.makedirs(settings.output_dir, exist_ok=True)
        destination = settings.output_dir / download_file_name(
            input_file.name, output.extension
        )
        await output.save(destination)

        report = session.state.size_report
        logger.info(
            "Job complete.",
            extra={
                "output_file": str(destination),
                "capability": session.capability.value,
                "size": report.summary() if report else None,
            },
        )
        return destination
