"""Custom exceptions for the vidshift application.

This module defines all custom exception classes used throughout the
application, organized by functional area and providing structured
error information for better debugging and error handling.
"""

from typing import Any


class VidshiftError(Exception):
    """Base class for application-specific errors."""


class ConfigLoadError(VidshiftError):
    """Raised when a configuration file fails to load.

    Attributes:
        config_file: Path to the configuration file that failed to load.
    """

    def __init__(
        self,
        message: str,
        config_file: str | None = None,
    ):
        super().__init__(message)
        self.config_file = config_file


class OptionsValidationError(VidshiftError):
    """Raised when processing options or the input file fail a pre-run check.

    Validation failures never touch the engine and leave the session
    in the phase it was in.

    Attributes:
        field_name: The option or input attribute that failed validation.
        value: The offending value.
    """

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        value: Any = None,
    ):
        super().__init__(message)
        self.field_name = field_name
        self.value = value


class EngineError(VidshiftError):
    """Base class for errors originating from a transcoding engine."""


class FFmpegError(EngineError):
    """Raised when an ffmpeg subprocess fails.

    Attributes:
        stderr: Captured standard error output, if any.
        exit_code: Process exit code, if the process ran.
    """

    def __init__(
        self,
        message: str,
        stderr: str | None = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.stderr = stderr
        self.exit_code = exit_code


class FFProbeError(VidshiftError):
    """Raised when an ffprobe subprocess fails or its output is unusable.

    Attributes:
        stderr: Captured standard error (or unparsable standard output).
    """

    def __init__(
        self,
        message: str,
        stderr: str | None = None,
    ):
        super().__init__(message)
        self.stderr = stderr


class EngineAbortedError(EngineError):
    """Raised by an engine when an in-flight execution was terminated."""


class CleanupError(EngineError):
    """Raised when an engine-private file cannot be deleted.

    Attributes:
        file_name: The engine-private file name that could not be removed.
    """

    def __init__(
        self,
        message: str,
        file_name: str | None = None,
    ):
        super().__init__(message)
        self.file_name = file_name


class EngineLoadError(VidshiftError):
    """Raised when no engine build could be loaded.

    Attributes:
        capability: The last capability that was attempted.
    """

    def __init__(
        self,
        message: str,
        capability: str | None = None,
    ):
        super().__init__(message)
        self.capability = capability


class ExecutionError(VidshiftError):
    """Raised when a run fails after the engine was invoked.

    Attributes:
        run_id: Identifier of the failed run.
        last_log: The last log line the engine emitted before failing.
        exit_code: Engine exit code, when one was reported.
    """

    def __init__(
        self,
        message: str,
        run_id: str | None = None,
        last_log: str | None = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.run_id = run_id
        self.last_log = last_log
        self.exit_code = exit_code


class RunCancelledError(ExecutionError):
    """Raised when a run ends because cancellation was requested."""


class SessionError(VidshiftError):
    """Base class for errors raised by the engine session itself.

    Attributes:
        phase: The session phase when the operation was rejected.
    """

    def __init__(
        self,
        message: str,
        phase: str | None = None,
    ):
        super().__init__(message)
        self.phase = phase


class SessionBusyError(SessionError):
    """Raised when an operation is rejected because work is already in flight."""


class SessionStateError(SessionError):
    """Raised when an operation is not valid in the session's current phase."""


class OutputReleasedError(VidshiftError):
    """Raised when the bytes of a released output are accessed."""
