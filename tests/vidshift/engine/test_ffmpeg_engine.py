# pyright: reportPrivateUsage=false

"""Unit tests for the ffmpeg subprocess engine and its loader."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vidshift.engine import (
    Capability,
    EngineEvent,
    FFmpegEngine,
    FFmpegEngineLoader,
    LogEvent,
    ProgressEvent,
)
from vidshift.exceptions import (
    CleanupError,
    EngineAbortedError,
    EngineError,
    FFmpegError,
)

VERSION_OUTPUT = b"ffmpeg version 7.1 Copyright (c) 2000-2024\nconfiguration: --enable-gpl\n"

STDERR = (
    b"Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'input-1.mp4':\n"
    b"  Duration: 00:00:20.00, start: 0.000000, bitrate: 900 kb/s\n"
    b"frame=  100 fps=50 q=28.0 size=256kB time=00:00:05.00 bitrate=1.0kbits/s speed=2x\r"
    b"frame=  300 fps=50 q=28.0 size=768kB time=00:00:15.00 bitrate=1.0kbits/s speed=2x\r"
)


def _stderr_reader(data: bytes, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


def _process(stderr: asyncio.StreamReader, returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.pid = 4242
    proc.stderr = stderr
    proc.wait = AsyncMock(return_value=returncode)
    return proc


@pytest.fixture
def engine(tmp_path: Path) -> FFmpegEngine:
    """Provide an engine whose workspace is a temporary directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return FFmpegEngine("ffmpeg", Capability.SINGLE_THREADED, workspace)


# --- file storage ---


@pytest.mark.unit
@pytest.mark.asyncio
async def test_write_read_delete(engine: FFmpegEngine) -> None:
    """Files written to the engine can be read back and deleted."""
    await engine.write_file("input-1.mp4", b"data")

    assert await engine.read_file("input-1.mp4") == b"data"
    assert (engine.workspace / "input-1.mp4").exists()

    await engine.delete_file("input-1.mp4")
    assert not (engine.workspace / "input-1.mp4").exists()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_missing_file_raises_cleanup_error(engine: FFmpegEngine) -> None:
    """Deleting a file that does not exist raises CleanupError."""
    with pytest.raises(CleanupError) as exc_info:
        await engine.delete_file("output.mp4")
    assert exc_info.value.file_name == "output.mp4"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_missing_file_raises(engine: FFmpegEngine) -> None:
    """Reading a file that does not exist raises EngineError."""
    with pytest.raises(EngineError):
        await engine.read_file("output.mp4")


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "..", "../escape.mp4", "dir/input.mp4"])
async def test_path_like_names_are_rejected(engine: FFmpegEngine, name: str) -> None:
    """Engine file names cannot leave the workspace."""
    with pytest.raises(EngineError):
        await engine.write_file(name, b"x")


# --- exec ---


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_exec_relays_logs_and_progress(
    mock_cse: AsyncMock, engine: FFmpegEngine
) -> None:
    """stderr lines become log events and status lines become progress events."""
    mock_cse.return_value = _process(_stderr_reader(STDERR))
    events: list[EngineEvent] = []
    engine.on(events.append)

    rc = await engine.exec(["-i", "input-1.mp4", "-y", "output.mp4"])

    assert rc == 0
    progress = [e.progress for e in events if isinstance(e, ProgressEvent)]
    assert progress == [pytest.approx(0.25), pytest.approx(0.75), 1.0]
    logs = [e.message for e in events if isinstance(e, LogEvent)]
    assert logs[0].startswith("Input #0")
    assert len(logs) == 4

    call_args = mock_cse.call_args
    assert call_args.args[:3] == ("ffmpeg", "-hide_banner", "-nostdin")
    assert call_args.args[-1] == "output.mp4"
    assert call_args.kwargs["cwd"] == str(engine.workspace)


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_exec_nonzero_exit_returns_code(
    mock_cse: AsyncMock, engine: FFmpegEngine
) -> None:
    """A failing invocation returns its exit code without a final progress event."""
    mock_cse.return_value = _process(
        _stderr_reader(b"Unrecognized option 'bogus'.\n"), returncode=8
    )
    events: list[EngineEvent] = []
    engine.on(events.append)

    rc = await engine.exec(["-bogus"])

    assert rc == 8
    assert events == [LogEvent("Unrecognized option 'bogus'.")]


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_exec_missing_binary(mock_cse: AsyncMock, engine: FFmpegEngine) -> None:
    """A missing ffmpeg executable raises FFmpegError."""
    mock_cse.side_effect = FileNotFoundError("ffmpeg")

    with pytest.raises(FFmpegError):
        await engine.exec(["-i", "input-1.mp4", "output.mp4"])


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_terminate_aborts_exec(mock_cse: AsyncMock, engine: FFmpegEngine) -> None:
    """terminate during exec makes exec raise EngineAbortedError."""
    reader = _stderr_reader(b"frame=1 time=00:00:00.10\r", eof=False)
    proc = _process(reader, returncode=255)
    proc.terminate.side_effect = lambda: reader.feed_eof()
    mock_cse.return_value = proc

    task = asyncio.create_task(engine.exec(["-i", "input-1.mp4", "output.mp4"]))
    while engine._process is None:
        await asyncio.sleep(0)
    await engine.terminate()

    with pytest.raises(EngineAbortedError):
        await task
    proc.terminate.assert_called_once()
    assert engine._process is None


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_terminate_during_spawn_aborts_exec(
    mock_cse: AsyncMock, engine: FFmpegEngine
) -> None:
    """terminate while the process is still being spawned kills it once it exists."""
    reader = _stderr_reader(b"frame=1 time=00:00:00.10\r", eof=False)
    proc = _process(reader, returncode=255)
    proc.terminate.side_effect = lambda: reader.feed_eof()

    async def spawn(*args: object, **kwargs: object) -> MagicMock:
        await engine.terminate()
        return proc

    mock_cse.side_effect = spawn

    with pytest.raises(EngineAbortedError):
        await engine.exec(["-i", "input-1.mp4", "output.mp4"])
    proc.terminate.assert_called_once()
    assert engine._process is None


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_exec_keeps_multibyte_text_split_across_reads(
    mock_cse: AsyncMock, engine: FFmpegEngine
) -> None:
    """A UTF-8 character split across stderr chunks is decoded intact."""
    text = ("x" * 4095 + "é title\n").encode()
    assert text[4095:4097] == "é".encode()
    mock_cse.return_value = _process(_stderr_reader(text))
    events: list[EngineEvent] = []
    engine.on(events.append)

    await engine.exec(["-i", "input-1.mp4", "output.mp4"])

    logs = [e.message for e in events if isinstance(e, LogEvent)]
    assert logs == ["x" * 4095 + "é title"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_terminate_when_idle_is_noop(engine: FFmpegEngine) -> None:
    """terminate without a running process does nothing."""
    await engine.terminate()
    assert engine._terminated is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unsubscribe_stops_events(engine: FFmpegEngine) -> None:
    """An unsubscribed listener is not called; unsubscribing twice is harmless."""
    events: list[EngineEvent] = []
    unsubscribe = engine.on(events.append)

    unsubscribe()
    unsubscribe()
    engine._emit(LogEvent("x"))

    assert events == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_removes_workspace(engine: FFmpegEngine) -> None:
    """close deletes the workspace and everything in it."""
    await engine.write_file("input-1.mp4", b"data")

    await engine.close()

    assert not engine.workspace.exists()


# --- loader ---


def _version_process(stdout: bytes, returncode: int = 0) -> AsyncMock:
    proc = AsyncMock()
    proc.returncode = returncode
    proc.communicate.return_value = (stdout, b"" if returncode == 0 else b"err")
    return proc


@pytest.mark.unit
def test_binary_for_capability() -> None:
    """The single-threaded build defaults to the main ffmpeg path."""
    loader = FFmpegEngineLoader("ffmpeg-mt")
    assert loader.binary_for(Capability.MULTI_THREADED) == "ffmpeg-mt"
    assert loader.binary_for(Capability.SINGLE_THREADED) == "ffmpeg-mt"

    loader = FFmpegEngineLoader("ffmpeg-mt", single_thread_path="ffmpeg-st")
    assert loader.binary_for(Capability.SINGLE_THREADED) == "ffmpeg-st"


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_loader_creates_engine_with_workspace(
    mock_cse: AsyncMock, tmp_path: Path
) -> None:
    """A successful version check yields an engine with a fresh workspace."""
    mock_cse.return_value = _version_process(VERSION_OUTPUT)
    loader = FFmpegEngineLoader(workspace_root=tmp_path / "engines")

    engine = await loader.load(Capability.MULTI_THREADED)

    assert engine.capability is Capability.MULTI_THREADED
    assert engine.workspace.is_dir()
    assert engine.workspace.parent == tmp_path / "engines"
    assert engine.workspace.name.startswith("vidshift-")
    assert mock_cse.call_args.args == ("ffmpeg", "-version")
    await engine.close()


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_loader_rejects_build_without_threads(
    mock_cse: AsyncMock, tmp_path: Path
) -> None:
    """A build configured without pthreads cannot load as multi-threaded."""
    mock_cse.return_value = _version_process(
        b"ffmpeg version 7.1\nconfiguration: --disable-pthreads\n"
    )
    loader = FFmpegEngineLoader(workspace_root=tmp_path)

    with pytest.raises(FFmpegError):
        await loader.load(Capability.MULTI_THREADED)

    engine = await loader.load(Capability.SINGLE_THREADED)
    assert engine.capability is Capability.SINGLE_THREADED
    await engine.close()


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_loader_unusable_workspace_root(
    mock_cse: AsyncMock, tmp_path: Path
) -> None:
    """A workspace root that cannot be created raises EngineError."""
    mock_cse.return_value = _version_process(VERSION_OUTPUT)
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")
    loader = FFmpegEngineLoader(workspace_root=blocker / "engines")

    with pytest.raises(EngineError) as exc_info:
        await loader.load(Capability.SINGLE_THREADED)
    assert isinstance(exc_info.value.__cause__, OSError)


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_loader_failed_version_check(mock_cse: AsyncMock) -> None:
    """A build failing its version check raises FFmpegError with the exit code."""
    mock_cse.return_value = _version_process(b"", returncode=1)

    with pytest.raises(FFmpegError) as exc_info:
        await FFmpegEngineLoader().load(Capability.SINGLE_THREADED)
    assert exc_info.value.exit_code == 1


@pytest.mark.unit
@pytest.mark.asyncio
@patch("asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_loader_missing_binary(mock_cse: AsyncMock) -> None:
    """A missing build raises FFmpegError."""
    mock_cse.side_effect = FileNotFoundError("ffmpeg")

    with pytest.raises(FFmpegError):
        await FFmpegEngineLoader().load(Capability.SINGLE_THREADED)
