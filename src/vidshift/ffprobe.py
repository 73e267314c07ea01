"""Thin async wrapper around ffprobe for media probing.

Used before a run to learn the source duration so trim windows can be
validated without touching the engine.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

from .exceptions import FFProbeError


class FFProbe:
    """Run ffprobe commands to gather media metadata.

    Attributes:
        binary: The ffprobe executable to invoke.
    """

    def __init__(self, binary: str = "ffprobe"):
        self.binary = binary

    async def _run(self, *args: str) -> tuple[int, bytes, bytes]:
        """Execute ffprobe with the given arguments.

        Returns:
            Tuple of (returncode, stdout, stderr).

        Raises:
            FFProbeError: When ffprobe is missing or cannot be executed.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FFProbeError("ffprobe executable not found") from e
        except OSError as e:
            raise FFProbeError("Failed to execute ffprobe") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Ensure subprocess cleanup on cancellation
            process.kill()
            raise

        return process.returncode or 0, stdout or b"", stderr or b""

    async def get_duration_seconds(self, file_path: Path) -> float:
        """Return the media duration of a local file in seconds.

        Raises:
            FFProbeError: When ffprobe fails or its output is empty or unparsable.
        """
        rc, stdout, stderr = await self._run(
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(file_path),
        )
        if rc != 0:
            raise FFProbeError(
                "ffprobe failed (duration)",
                stderr=stderr.decode() if stderr else None,
            )
        text = stdout.decode().strip()
        if not text:
            raise FFProbeError(
                "ffprobe returned empty duration output",
                stderr=stderr.decode() if stderr else None,
            )
        try:
            return float(text)
        except ValueError as e:
            raise FFProbeError("Failed to parse duration output", stderr=text) from e

    async def get_video_codec(self, file_path: Path) -> str | None:
        """Return the codec name of the first video stream, or None if there is none.

        Raises:
            FFProbeError: When ffprobe fails or its JSON output cannot be parsed.
        """
        rc, stdout, stderr = await self._run(
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_streams",
            "-select_streams",
            "v:0",
            str(file_path),
        )
        if rc != 0:
            raise FFProbeError(
                "ffprobe failed (video codec)",
                stderr=stderr.decode() if stderr else None,
            )
        try:
            data: dict[str, Any] = json.loads(stdout.decode())
        except json.JSONDecodeError as e:
            raise FFProbeError(
                "Failed to parse ffprobe JSON output (video codec)",
                stderr=stdout.decode(),
            ) from e

        streams = data.get("streams") or []
        if not streams:
            return None
        codec_name = streams[0].get("codec_name")
        return codec_name.lower() if isinstance(codec_name, str) else None
