"""Run-scoped tracking of engine-private files.

Names are recorded before the engine is asked to create them, so a write
that fails half-way still gets cleaned up. Release is best-effort: a
deletion failure is logged and never replaces the run's own outcome.
"""

from collections.abc import Iterator
import logging
from types import TracebackType
from typing import Self

from .engine.interface import TranscodeEngine

logger = logging.getLogger(__name__)


class ResourceLedger:
    """Engine-side file names created during one run.

    Use as an async context manager; every recorded name is deleted on
    exit, whatever the outcome::

        async with ResourceLedger(engine) as ledger:
            ledger.record("input-1.mp4")
            await engine.write_file("input-1.mp4", data)
    """

    def __init__(self, engine: TranscodeEngine):
        self._engine = engine
        self._names: list[str] = []

    def record(self, name: str) -> str:
        """Track ``name`` for deletion; recording the same name twice is a no-op."""
        if name not in self._names:
            self._names.append(name)
        return name

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    async def release(self) -> list[str]:
        """Delete every recorded file and clear the ledger.

        Returns:
            Names whose deletion failed; those failures are swallowed.
        """
        failed: list[str] = []
        names, self._names = self._names, []
        for name in names:
            try:
                await self._engine.delete_file(name)
            except Exception as e:
                # Includes deleting a file the engine never managed to create.
                logger.debug(
                    "Ignoring engine file cleanup failure.",
                    extra={"file_name": name},
                    exc_info=e,
                )
                failed.append(name)
        return failed

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.release()
