"""Run output ownership and reporting.

An ``OutputBlob`` holds the bytes produced by a run. The session owns at
most one live blob and releases it before creating the next.
"""

from collections.abc import Callable
from dataclasses import dataclass
import logging
from pathlib import Path, PurePosixPath

import aiofiles

from .exceptions import OutputReleasedError

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


class OutputBlob:
    """Typed bytes produced by a successful run.

    Attributes:
        mime_type: MIME type of the output container.
        file_name: Engine-side output name, e.g. ``output.mp4``.
        size_bytes: Size of the output in bytes.
    """

    def __init__(
        self,
        data: bytes,
        mime_type: str,
        file_name: str,
        on_release: Callable[["OutputBlob"], None] | None = None,
    ):
        self._data: bytes | None = data
        self.mime_type = mime_type
        self.file_name = file_name
        self.size_bytes = len(data)
        self._on_release = on_release

    def __repr__(self) -> str:
        return (
            f"OutputBlob(file_name={self.file_name!r}, mime_type={self.mime_type!r}, "
            f"size_bytes={self.size_bytes}, released={self.released})"
        )

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise OutputReleasedError("Output has already been released.")
        return self._data

    @property
    def extension(self) -> str:
        return PurePosixPath(self.file_name).suffix.lstrip(".")

    def release(self) -> bool:
        """Drop the bytes.

        Returns:
            True if this call released the blob, False if it was already released.
        """
        if self._data is None:
            return False
        self._data = None
        if self._on_release is not None:
            self._on_release(self)
        return True

    async def save(self, path: Path) -> Path:
        """Write the output to ``path`` and return it."""
        async with aiofiles.open(path, "wb") as f:
            await f.write(self.data)
        logger.debug(
            "Output saved.", extra={"path": str(path), "size_bytes": self.size_bytes}
        )
        return path


def download_file_name(original_name: str, output_extension: str) -> str:
    """Return the user-facing name for an output, e.g. ``clip_processed.gif``."""
    stem = PurePosixPath(original_name).stem or "output"
    return f"{stem}_processed.{output_extension}"


def format_file_size(size_bytes: int) -> str:
    """Format a byte count as ``1.5 MB`` style text."""
    if size_bytes <= 0:
        return "0 Bytes"
    value = float(size_bytes)
    unit_index = 0
    while value >= 1024 and unit_index < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit_index += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[unit_index]}"


@dataclass(frozen=True, slots=True)
class SizeReport:
    """Comparison of input and output sizes."""

    original_bytes: int
    output_bytes: int

    @property
    def reduction_percent(self) -> float:
        """Percentage saved; negative when the output grew."""
        if self.original_bytes <= 0:
            return 0.0
        return (self.original_bytes - self.output_bytes) / self.original_bytes * 100

    @property
    def has_reduction(self) -> bool:
        return self.reduction_percent > 0

    def summary(self) -> str:
        text = (
            f"{format_file_size(self.original_bytes)} -> "
            f"{format_file_size(self.output_bytes)}"
        )
        if self.has_reduction:
            text += f" ({self.reduction_percent:.1f}% smaller)"
        return text
