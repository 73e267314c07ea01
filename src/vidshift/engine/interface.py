"""Transcoding engine contracts.

The session drives an engine through the operations declared here and
never depends on a concrete build, so tests can substitute an in-memory
engine for the ffmpeg subprocess one.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class Capability(str, Enum):
    """Threading capability of a loaded engine build."""

    UNKNOWN = "UNKNOWN"
    MULTI_THREADED = "MULTI_THREADED"
    SINGLE_THREADED = "SINGLE_THREADED"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Fraction of the current execution completed, nominally in [0, 1]."""

    progress: float


@dataclass(frozen=True, slots=True)
class LogEvent:
    """A free-text line emitted by the engine."""

    message: str


EngineEvent = ProgressEvent | LogEvent
EngineListener = Callable[[EngineEvent], None]


class TranscodeEngine(Protocol):
    """A loaded engine with private file storage.

    Every operation may fail independently. Events are delivered to
    listeners while ``exec`` runs.
    """

    capability: Capability

    def on(self, listener: EngineListener) -> Callable[[], None]:
        """Subscribe to engine events; returns a callable that unsubscribes."""
        ...

    async def write_file(self, name: str, data: bytes) -> None: ...

    async def exec(self, args: Sequence[str]) -> int:
        """Run one invocation and return its exit code.

        Raises:
            EngineAbortedError: If ``terminate`` was called while running.
        """
        ...

    async def read_file(self, name: str) -> bytes: ...

    async def delete_file(self, name: str) -> None:
        """Remove a private file.

        Raises:
            CleanupError: If the file cannot be removed.
        """
        ...

    async def terminate(self) -> None:
        """Ask a running ``exec`` to abort."""
        ...

    async def close(self) -> None:
        """Release all engine resources, including private storage."""
        ...


class EngineLoader(Protocol):
    """Produces engine instances for a requested capability."""

    async def load(self, capability: Capability) -> TranscodeEngine:
        """Load the build for ``capability``.

        Raises:
            EngineError: If the build is unreachable or incompatible.
        """
        ...
