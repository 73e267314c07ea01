"""Shared fixtures for integration tests."""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from vidshift.engine import FFmpegEngineLoader, HostEnvironment
from vidshift.ffprobe import FFProbe
from vidshift.session import EngineSession

SAMPLE_DURATION_SECONDS = 4


@pytest.fixture
def ffprobe() -> FFProbe:
    """Provide an FFProbe using the ffprobe on PATH."""
    return FFProbe()


@pytest.fixture
def engine_loader(tmp_path: Path) -> FFmpegEngineLoader:
    """Provide a loader for the ffmpeg on PATH with workspaces under tmp_path."""
    return FFmpegEngineLoader(workspace_root=tmp_path / "engines")


@pytest.fixture
def sample_duration_seconds() -> int:
    """Provide the length of the rendered sample video."""
    return SAMPLE_DURATION_SECONDS


@pytest_asyncio.fixture
async def sample_video(tmp_path: Path) -> Path:
    """Render a short 320x240 test pattern with a sine tone using real ffmpeg."""
    path = tmp_path / "sample.mp4"
    process = await asyncio.create_subprocess_exec(
        "ffmpeg",
        "-hide_banner",
        "-nostdin",
        "-f",
        "lavfi",
        "-i",
        f"testsrc=duration={SAMPLE_DURATION_SECONDS}:size=320x240:rate=30",
        "-f",
        "lavfi",
        "-i",
        f"sine=frequency=440:duration={SAMPLE_DURATION_SECONDS}",
        "-c:v",
        "libx264",
        "-pix_fmt",
        "yuv420p",
        "-c:a",
        "aac",
        "-shortest",
        "-y",
        str(path),
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await process.communicate()
    assert process.returncode == 0, stderr.decode(errors="replace")
    return path


@pytest_asyncio.fixture
async def session(
    engine_loader: FFmpegEngineLoader,
) -> AsyncGenerator[EngineSession]:
    """Provide a loaded session, closed after the test."""
    async with EngineSession(
        engine_loader, HostEnvironment(shared_memory_available=True, cpu_count=2)
    ) as session:
        await session.load()
        yield session
