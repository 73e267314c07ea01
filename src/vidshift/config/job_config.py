"""Configuration for a single processing job."""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..options import (
    MAX_QUALITY,
    MIN_QUALITY,
    NO_TRIM,
    OutputFormat,
    Preset,
    ProcessOptions,
    Resolution,
    options_for_preset,
)


class JobConfig(BaseModel):
    """Options for one run, as read from YAML, environment or CLI.

    Fields left unset fall back to the preset (when one is named) and then
    to the ``ProcessOptions`` defaults.
    """

    input_file: Path | None = Field(
        default=None, description="Path of the video to process."
    )
    preset: Preset | None = Field(
        default=None,
        description="Named preset (youtube, instagram, whatsapp, custom) applied before explicit options.",
    )
    format: OutputFormat | None = Field(
        default=None, description="Output container, or 'original' to keep the source container."
    )
    resolution: Resolution | None = Field(
        default=None, description="Resolution preset (4k, 1080p, 720p, 480p, 1080p-vertical, original)."
    )
    quality: int | None = Field(
        default=None,
        ge=MIN_QUALITY,
        le=MAX_QUALITY,
        description="Quality tier from 1 (smallest) to 4 (best).",
    )
    frame_rate: int | None = Field(
        default=None, description="Target frame rate (60, 30, 24); unset keeps the source rate."
    )
    start_time: str = Field(default=NO_TRIM, description="Trim start as HH:MM:SS.")
    end_time: str = Field(default=NO_TRIM, description="Trim end as HH:MM:SS.")
    aspect_ratio: str | None = Field(
        default=None, description="Crop to a named aspect ratio such as 16:9 or 1:1."
    )

    @field_validator("frame_rate", mode="before")
    @classmethod
    def parse_frame_rate(cls, v: Any) -> int | None:
        """Accept 'original' (case-insensitive) and empty values as "unchanged".

        Raises:
            ValueError: If the value is not an int, a numeric string, or None.
        """
        match v:
            case None:
                return None
            case str() as s if not s.strip() or s.strip().lower() == "original":
                return None
            case str() as s:
                return int(s.strip())
            case bool():
                raise ValueError("frame_rate must be an integer")
            case int() as i:
                return i
            case _:
                raise ValueError(f"frame_rate must be an integer, got {type(v).__name__}")

    def to_process_options(self) -> ProcessOptions:
        """Merge the preset and explicit fields into a ``ProcessOptions``."""
        base = options_for_preset(self.preset) if self.preset else ProcessOptions()
        return ProcessOptions(
            format=self.format or base.format,
            resolution=self.resolution or base.resolution,
            quality=self.quality if self.quality is not None else base.quality,
            frame_rate=(
                self.frame_rate
                if "frame_rate" in self.model_fields_set
                else base.frame_rate
            ),
            start_time=self.start_time,
            end_time=self.end_time,
            aspect_ratio=self.aspect_ratio,
        )
