"""Application configuration management for vidshift.

This module defines the application settings model and a settings source
that loads an optional YAML file named by the ``config_file`` field.
"""

from enum import Enum
import logging
from pathlib import Path
from typing import Any, Literal, cast

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
import yaml

from ..exceptions import ConfigLoadError
from ..validation import DEFAULT_ACCEPTED_MIME_TYPES, DEFAULT_MAX_INPUT_SIZE_MB
from .job_config import JobConfig

logger = logging.getLogger(__name__)


class DebugMode(str, Enum):
    """Represent available debug modes for the application.

    Debug modes exercise one component in isolation instead of running a
    full job.
    """

    COMPILE = "compile"
    PROBE = "probe"


class YamlFileFromFieldSource(PydanticBaseSettingsSource):
    """Load configuration from a YAML file specified by a field.

    Runs after the sources that may set ``config_file``. A missing
    ``config_file`` skips YAML loading entirely.

    Attributes:
        yaml_file_encoding: Encoding to use when reading the YAML file.
        yaml_data: Cached YAML data loaded from the file.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file_encoding: str | None = None,
    ):
        super().__init__(settings_cls)
        self.yaml_file_encoding = yaml_file_encoding or "utf-8"
        self.yaml_data: dict[str, Any] = {}

    def _get_current_state_of(self, field_name: str) -> Any:
        """Get the current state of a field from the settings model."""
        value = self.current_state.get(field_name)
        if value not in (None, PydanticUndefined):
            return value

        field_info = self.settings_cls.model_fields[field_name]
        if isinstance(field_info.validation_alias, str):
            value = self.current_state.get(field_info.validation_alias)
            if value not in (None, PydanticUndefined):
                return value
        return field_info.get_default()

    def _get_yaml_path(self) -> Path | None:
        """Determine the YAML path from the already processed settings state."""
        path_value = self._get_current_state_of("config_file")
        match path_value:
            case None:
                return None
            case Path() as p:
                return p.expanduser()
            case str() as s if s.strip():
                return Path(s).expanduser()
            case str():
                return None
            case _:
                raise TypeError(
                    f"Field 'config_file' must resolve to a Path or string, "
                    f"received type '{type(path_value).__name__}'"
                )

    def _read_yaml_file(self, file_path: Path) -> dict[str, Any]:
        """Read and parse the YAML file."""
        logger.debug("Reading YAML configuration.", extra={"file_path": str(file_path)})
        with Path.open(file_path, encoding=self.yaml_file_encoding) as f:
            loaded_yaml = yaml.safe_load(f)

        if isinstance(loaded_yaml, dict):
            return cast(dict[str, Any], loaded_yaml)
        elif loaded_yaml is None:
            logger.info(
                "YAML configuration file is empty.",
                extra={"file_path": str(file_path)},
            )
            return {}
        else:
            raise TypeError(
                f"Invalid YAML config format: expected dict, got {type(loaded_yaml).__name__}"
            )

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        """Get value from loaded YAML data."""
        field_value = self.yaml_data.get(field_name)
        return field_value, field_name, self.field_is_complex(field)

    def __call__(self) -> dict[str, Any]:
        """Load YAML data from the file named by the config_file field."""
        try:
            yaml_path = self._get_yaml_path()
        except TypeError as e:
            raise ConfigLoadError(
                "Failed to resolve YAML configuration file path.",
            ) from e

        if yaml_path is None:
            logger.debug("No YAML configuration file specified; skipping YAML loading.")
            self.yaml_data = {}
            return {}

        try:
            self.yaml_data = self._read_yaml_file(yaml_path)
        except (TypeError, OSError, yaml.YAMLError) as e:
            raise ConfigLoadError(
                "Failed to load or parse YAML configuration file.",
                config_file=str(yaml_path),
            ) from e

        return self.yaml_data.copy()


class AppSettings(BaseSettings):
    """Application settings.

    Loaded from initialization arguments, environment variables, CLI
    arguments and an optional YAML file, in that order of precedence.

    Attributes:
        debug_mode: Debug mode to run (compile, probe, or None).
        log_format: Format for application logs (human or json).
        log_level: Logging level for the application.
        log_include_stacktrace: Include full stack traces in error logs.
        ffmpeg_path: ffmpeg build used for multi-threaded runs.
        ffmpeg_single_thread_path: ffmpeg build used when multi-threading is unavailable.
        ffprobe_path: ffprobe executable used to read source durations.
        enable_multithreading: Allow the multi-threaded build to be attempted.
        workspace_dir: Parent directory for engine scratch directories.
        max_input_size_mb: Largest accepted input file.
        accepted_mime_types: MIME types accepted for input files.
        run_timeout_seconds: Cancel a run that takes longer than this.
        output_dir: Directory receiving processed files.
        config_file: Optional path to a YAML config file.
        job: The job to run.
    """

    debug_mode: DebugMode | None = Field(
        default=None,
        validation_alias="DEBUG_MODE",
        description="Specifies the debug mode to run ('compile', 'probe', or None for default).",
    )
    log_format: Literal["human", "json"] = Field(
        default="human",
        validation_alias="LOG_FORMAT",
        description="Format for application logs ('human' or 'json').",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level for the application (e.g., DEBUG, INFO, WARNING, ERROR). Case-insensitive.",
    )
    log_include_stacktrace: bool = Field(
        default=False,
        validation_alias="LOG_INCLUDE_STACKTRACE",
        description="Include full stack traces in error logs (true/false).",
    )

    # Engine configuration
    ffmpeg_path: str = Field(
        default="ffmpeg",
        validation_alias="FFMPEG_PATH",
        description="ffmpeg executable used as the multi-threaded build.",
    )
    ffmpeg_single_thread_path: str | None = Field(
        default=None,
        validation_alias="FFMPEG_SINGLE_THREAD_PATH",
        description="ffmpeg executable used as the single-threaded build. Defaults to ffmpeg_path.",
    )
    ffprobe_path: str = Field(
        default="ffprobe",
        validation_alias="FFPROBE_PATH",
        description="ffprobe executable used to read source durations.",
    )
    enable_multithreading: bool = Field(
        default=True,
        validation_alias="ENABLE_MULTITHREADING",
        description="Attempt the multi-threaded build before falling back to single-threaded.",
    )
    workspace_dir: Path | None = Field(
        default=None,
        validation_alias="WORKSPACE_DIR",
        description="Parent directory for engine scratch directories. Defaults to the system temp directory.",
    )

    # Input limits
    max_input_size_mb: int = Field(
        default=DEFAULT_MAX_INPUT_SIZE_MB,
        ge=1,
        validation_alias="MAX_INPUT_SIZE_MB",
        description="Largest accepted input file, in megabytes.",
    )
    accepted_mime_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ACCEPTED_MIME_TYPES),
        validation_alias="ACCEPTED_MIME_TYPES",
        description="MIME types accepted for input files.",
    )
    run_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        validation_alias="RUN_TIMEOUT_SECONDS",
        description="Cancel a run that takes longer than this many seconds. Unset means no limit.",
    )

    output_dir: Path = Field(
        default=Path("."),
        validation_alias="OUTPUT_DIR",
        description="Directory receiving processed files.",
    )
    config_file: Path | None = Field(
        default=None,
        validation_alias="CONFIG_FILE",
        description="Optional path to a YAML config file.",
    )

    job: JobConfig = Field(
        default_factory=JobConfig,
        description="The job to run.",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_ignore_unknown_args=True,
        cli_kebab_case=True,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("ffmpeg_single_thread_path", mode="before")
    @classmethod
    def blank_path_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order and sources for settings loading.

        Initialization parameters and environment variables come first so
        they can set ``config_file``; ``YamlFileFromFieldSource`` then reads
        that file.

        Returns:
            Tuple of settings sources in the order they should be processed.
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlFileFromFieldSource(settings_cls=settings_cls),
            file_secret_settings,
        )
