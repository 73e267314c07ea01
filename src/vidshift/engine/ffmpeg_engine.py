"""ffmpeg subprocess engine.

Each loaded engine owns a private scratch directory that stands in for the
engine's file storage: inputs are written there, ffmpeg runs with it as the
working directory, and outputs are read back from it. All subprocess and
file work is asynchronous so the event loop is never blocked.
"""

import asyncio
import codecs
from collections.abc import AsyncIterator, Callable, Sequence
import contextlib
import logging
from pathlib import Path
import re
import shutil
import tempfile

import aiofiles
import aiofiles.os

from ..exceptions import CleanupError, EngineAbortedError, EngineError, FFmpegError
from .ffmpeg_progress import ProgressTracker
from .interface import (
    Capability,
    EngineEvent,
    EngineListener,
    LogEvent,
    ProgressEvent,
)

logger = logging.getLogger(__name__)

_READ_CHUNK_SIZE = 4096
_LINE_SPLIT_RE = re.compile(r"[\r\n]")


async def _iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """Yield lines from ``stream``, treating ``\\r`` as a line break.

    ffmpeg rewrites its status line in place with carriage returns.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    while True:
        chunk = await stream.read(_READ_CHUNK_SIZE)
        if not chunk:
            buffer += decoder.decode(b"", final=True)
            break
        buffer += decoder.decode(chunk)
        *lines, buffer = _LINE_SPLIT_RE.split(buffer)
        for line in lines:
            if line.strip():
                yield line.strip()
    if buffer.strip():
        yield buffer.strip()


class FFmpegEngine:
    """Run ffmpeg invocations against a private scratch directory.

    Attributes:
        binary: The ffmpeg executable backing this engine.
        capability: Threading capability the build was loaded with.
        workspace: Private directory holding engine files.
    """

    def __init__(
        self,
        binary: str,
        capability: Capability,
        workspace: Path,
        owns_workspace: bool = True,
    ):
        self.binary = binary
        self.capability = capability
        self.workspace = workspace
        self._owns_workspace = owns_workspace
        self._listeners: list[EngineListener] = []
        self._process: asyncio.subprocess.Process | None = None
        self._terminated = False
        self._spawning = False

    def on(self, listener: EngineListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: EngineEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _path(self, name: str) -> Path:
        if not name or Path(name).name != name or name in (".", ".."):
            raise EngineError(f"Invalid engine file name: {name!r}")
        return self.workspace / name

    async def write_file(self, name: str, data: bytes) -> None:
        path = self._path(name)
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise EngineError(f"Failed to write engine file {name!r}") from e
        logger.debug(
            "Engine file written.", extra={"file_name": name, "size_bytes": len(data)}
        )

    async def read_file(self, name: str) -> bytes:
        path = self._path(name)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise EngineError(f"Failed to read engine file {name!r}") from e

    async def delete_file(self, name: str) -> None:
        path = self._path(name)
        try:
            await aiofiles.os.remove(path)
        except OSError as e:
            raise CleanupError("Failed to delete engine file.", file_name=name) from e

    async def exec(self, args: Sequence[str]) -> int:
        """Run ffmpeg with ``args`` and return its exit code.

        stderr lines are relayed as ``LogEvent``s and status lines are also
        converted into ``ProgressEvent``s.

        Raises:
            FFmpegError: If ffmpeg cannot be started.
            EngineAbortedError: If ``terminate`` was called during the run.
            EngineError: If another invocation is already running.
        """
        if self._process is not None or self._spawning:
            raise EngineError("Engine is already executing.")

        self._terminated = False
        self._spawning = True
        tracker = ProgressTracker(args)
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                "-hide_banner",
                "-nostdin",
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.workspace),
            )
        except FileNotFoundError as e:
            raise FFmpegError("ffmpeg executable not found") from e
        except OSError as e:
            raise FFmpegError("Failed to execute ffmpeg") from e
        finally:
            self._spawning = False

        self._process = process
        if self._terminated:
            # terminate() arrived while the process was being spawned.
            logger.debug("Terminating ffmpeg process.", extra={"pid": process.pid})
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
        try:
            if process.stderr is not None:
                async for line in _iter_lines(process.stderr):
                    self._emit(LogEvent(line))
                    fraction = tracker.feed(line)
                    if fraction is not None:
                        self._emit(ProgressEvent(fraction))
            returncode = await process.wait()
        except asyncio.CancelledError:
            # Ensure subprocess cleanup on cancellation
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            raise
        finally:
            self._process = None

        if self._terminated:
            raise EngineAbortedError("ffmpeg execution was terminated.")
        if returncode == 0:
            self._emit(ProgressEvent(1.0))
        return returncode

    async def terminate(self) -> None:
        process = self._process
        if process is None:
            if self._spawning:
                self._terminated = True
            return
        self._terminated = True
        logger.debug("Terminating ffmpeg process.", extra={"pid": process.pid})
        with contextlib.suppress(ProcessLookupError):
            process.terminate()

    async def close(self) -> None:
        await self.terminate()
        self._listeners.clear()
        if self._owns_workspace:
            await asyncio.to_thread(shutil.rmtree, self.workspace, ignore_errors=True)
            logger.debug(
                "Engine workspace removed.", extra={"workspace": str(self.workspace)}
            )


class FFmpegEngineLoader:
    """Load ffmpeg builds for a requested capability.

    Attributes:
        ffmpeg_path: Multi-threaded ffmpeg build.
        single_thread_path: Single-threaded ffmpeg build.
        workspace_root: Parent directory for engine scratch directories, or
            None for the system temporary directory.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        single_thread_path: str | None = None,
        workspace_root: Path | None = None,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.single_thread_path = single_thread_path or ffmpeg_path
        self.workspace_root = workspace_root

    def binary_for(self, capability: Capability) -> str:
        if capability is Capability.MULTI_THREADED:
            return self.ffmpeg_path
        return self.single_thread_path

    async def _run(self, binary: str, *args: str) -> tuple[int, bytes, bytes]:
        try:
            process = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FFmpegError("ffmpeg executable not found") from e
        except OSError as e:
            raise FFmpegError("Failed to execute ffmpeg") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            raise

        return process.returncode or 0, stdout or b"", stderr or b""

    async def _make_workspace(self) -> Path:
        try:
            if self.workspace_root is not None:
                await aiofiles.os.makedirs(self.workspace_root, exist_ok=True)
            path = await asyncio.to_thread(
                tempfile.mkdtemp, prefix="vidshift-", dir=self.workspace_root
            )
        except OSError as e:
            raise EngineError("Failed to create engine workspace.") from e
        return Path(path)

    async def load(self, capability: Capability) -> FFmpegEngine:
        """Verify the build for ``capability`` and create an engine for it.

        Raises:
            FFmpegError: If the build is missing, fails ``-version``, or is a
                multi-threaded request against a build without pthreads.
        """
        binary = self.binary_for(capability)
        rc, stdout, stderr = await self._run(binary, "-version")
        if rc != 0:
            raise FFmpegError(
                "ffmpeg build failed its version check",
                stderr=stderr.decode(errors="replace") if stderr else None,
                exit_code=rc,
            )
        version_text = stdout.decode(errors="replace")
        if capability is Capability.MULTI_THREADED and "--disable-pthreads" in version_text:
            raise FFmpegError("ffmpeg build does not support threading")

        workspace = await self._make_workspace()
        logger.debug(
            "ffmpeg build verified.",
            extra={
                "binary": binary,
                "capability": capability.value,
                "version": version_text.splitlines()[0] if version_text else "",
                "workspace": str(workspace),
            },
        )
        return FFmpegEngine(binary, capability, workspace)
