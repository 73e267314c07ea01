"""Engine session state machine.

The session owns one engine handle and the result of the most recent run.
It enforces the lifecycle::

    UNINITIALIZED --load--> LOADING --> READY --run--> RUNNING --> DONE
                                   \\--> FAILED            \\--> FAILED

``reset`` brings ``DONE``/``FAILED`` back to ``READY`` (engine loaded) or
``UNINITIALIZED``. Only one run is in flight at a time; a second ``run``
is rejected rather than queued. Every path out of ``RUNNING`` ends in
``DONE`` or ``FAILED`` and every engine-side file the run created is
removed through a ``ResourceLedger``.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
import itertools
import logging
from pathlib import Path
from types import TracebackType
from typing import Any, Self

import aiofiles

from .compiler import (
    compile_command,
    effective_container,
    input_extension,
    output_file_name,
)
from .engine.interface import Capability, EngineLoader, TranscodeEngine
from .engine.loading import (
    HostEnvironment,
    Loaded,
    LoadFailed,
    detect_host_environment,
    load_engine,
)
from .exceptions import (
    EngineAbortedError,
    EngineError,
    EngineLoadError,
    ExecutionError,
    RunCancelledError,
    SessionBusyError,
    SessionStateError,
)
from .ledger import ResourceLedger
from .logging_config import reset_context_id, set_context_id
from .mimetypes import mime_type_for_container, mimetypes
from .options import ProcessOptions
from .output import OutputBlob, SizeReport
from .progress import ChannelMessage, LogLine, ProgressChannel, ProgressUpdate
from .validation import (
    DEFAULT_ACCEPTED_MIME_TYPES,
    DEFAULT_MAX_INPUT_SIZE_MB,
    validate_input_file,
    validate_options,
)

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Lifecycle phase of an engine session."""

    UNINITIALIZED = "UNINITIALIZED"
    LOADING = "LOADING"
    READY = "READY"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class InputFile:
    """A source file handed to a run.

    Attributes:
        name: Original file name; its extension decides the engine-side name.
        data: File contents.
        mime_type: Declared MIME type, if known.
    """

    name: str
    data: bytes
    mime_type: str | None = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @classmethod
    async def from_path(cls, path: Path) -> "InputFile":
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, data=data, mime_type=mime_type)


@dataclass(frozen=True, slots=True)
class SessionState:
    """Snapshot of the observable session state.

    Attributes:
        phase: Current lifecycle phase.
        capability: Capability of the loaded engine; fixed once READY.
        progress: Completion percentage of the current or last run.
        last_log: Most recent engine log line.
        last_error: Failure description; only set in FAILED.
        output: The live output of the last successful run.
        output_size_bytes: Size of ``output``.
        input_size_bytes: Size of the input of the current or last run.
    """

    phase: Phase = Phase.UNINITIALIZED
    capability: Capability = Capability.UNKNOWN
    progress: int = 0
    last_log: str = ""
    last_error: str | None = None
    output: OutputBlob | None = None
    output_size_bytes: int = 0
    input_size_bytes: int = 0

    @property
    def size_report(self) -> SizeReport | None:
        if self.output is None:
            return None
        return SizeReport(
            original_bytes=self.input_size_bytes,
            output_bytes=self.output_size_bytes,
        )


StateListener = Callable[[SessionState], None]


class EngineSession:
    """Drive a transcoding engine through load, run, cancel and reset.

    Attributes:
        max_input_size_mb: Largest accepted input file.
        accepted_mime_types: MIME types accepted for input files.
    """

    def __init__(
        self,
        loader: EngineLoader,
        host: HostEnvironment | None = None,
        *,
        max_input_size_mb: int = DEFAULT_MAX_INPUT_SIZE_MB,
        accepted_mime_types: tuple[str, ...] = DEFAULT_ACCEPTED_MIME_TYPES,
    ):
        self._loader = loader
        self._host = host or detect_host_environment()
        self.max_input_size_mb = max_input_size_mb
        self.accepted_mime_types = accepted_mime_types

        self._engine: TranscodeEngine | None = None
        self._state = SessionState()
        self._listeners: list[StateListener] = []
        self._run_numbers = itertools.count(1)
        self._cancel_requested = False
        self._run_finished: asyncio.Event | None = None

        self.progress = ProgressChannel()
        self.progress.subscribe(self._on_channel_message)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def capability(self) -> Capability:
        return self._state.capability

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener receiving a ``SessionState`` on every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(
                    "Session state listener raised.",
                    extra={"listener": repr(listener)},
                    exc_info=e,
                )

    def _on_channel_message(self, message: ChannelMessage) -> None:
        if self._state.phase is not Phase.RUNNING:
            return
        match message:
            case ProgressUpdate(percent=percent):
                self._update(progress=percent)
            case LogLine(message=text):
                self._update(last_log=text)

    # --- load ---

    async def load(self) -> Capability:
        """Load the engine, preferring the multi-threaded build.

        Loading happens once per session; calling ``load`` with an engine
        already loaded returns its capability.

        Returns:
            The capability of the loaded engine.

        Raises:
            SessionBusyError: If a load is already in progress.
            SessionStateError: If a previous load failed and ``reset`` was not called.
            EngineLoadError: If every build failed or the loader crashed; the
                session is then FAILED.
        """
        if self._engine is not None:
            return self._state.capability
        if self._state.phase is Phase.LOADING:
            raise SessionBusyError(
                "Engine is already loading.", phase=Phase.LOADING.value
            )
        if self._state.phase is not Phase.UNINITIALIZED:
            raise SessionStateError(
                "Session must be reset before loading again.",
                phase=self._state.phase.value,
            )

        logger.info(
            "Loading engine.",
            extra={"shared_memory_available": self._host.shared_memory_available},
        )
        self._update(phase=Phase.LOADING, progress=0, last_error=None)
        try:
            result = await load_engine(self._loader, self._host)
        except asyncio.CancelledError:
            self._update(phase=Phase.UNINITIALIZED)
            raise
        except Exception as e:
            self._update(phase=Phase.FAILED, last_error=str(e) or type(e).__name__)
            logger.error("Engine loader crashed.", exc_info=e)
            raise EngineLoadError("Failed to load the transcoding engine.") from e

        match result:
            case Loaded(engine=engine, capability=capability):
                self._engine = engine
                self._update(phase=Phase.READY, capability=capability)
                return capability
            case LoadFailed(reason=reason):
                self._update(phase=Phase.FAILED, last_error=reason)
                logger.error("Engine failed to load.", extra={"reason": reason})
                raise EngineLoadError(
                    "Failed to load the transcoding engine.",
                    capability=Capability.SINGLE_THREADED.value,
                )

    # --- run ---

    async def run(
        self,
        file: InputFile,
        options: ProcessOptions,
        media_duration: float | None = None,
    ) -> OutputBlob:
        """Process ``file`` with ``options``.

        Args:
            file: Source file.
            options: Processing options for this run.
            media_duration: Source duration in seconds, used to validate the
                trim window when known.

        Returns:
            The output of the run, also exposed as ``state.output``.

        Raises:
            SessionBusyError: If a run is already in flight; that run is untouched.
            SessionStateError: If no engine is loaded or the session is FAILED.
            OptionsValidationError: If the file or options are invalid; the
                session phase does not change.
            RunCancelledError: If the run was cancelled; the session is FAILED.
            ExecutionError: If the engine failed; the session is FAILED.
        """
        if self._state.phase is Phase.RUNNING:
            raise SessionBusyError(
                "A run is already in progress.", phase=Phase.RUNNING.value
            )
        if self._engine is None or self._state.phase not in (Phase.READY, Phase.DONE):
            raise SessionStateError(
                "Session is not ready to run.", phase=self._state.phase.value
            )

        validate_input_file(
            file.name,
            file.size_bytes,
            file.mime_type,
            max_size_mb=self.max_input_size_mb,
            accepted_mime_types=self.accepted_mime_types,
        )
        validate_options(options, media_duration)

        engine = self._engine
        run_number = next(self._run_numbers)
        run_id = f"run-{run_number}"
        token = set_context_id(run_id)

        self._release_output()
        self._cancel_requested = False
        run_finished = self._run_finished = asyncio.Event()
        self.progress.reset()
        self._update(
            phase=Phase.RUNNING,
            progress=0,
            last_log="",
            last_error=None,
            output=None,
            output_size_bytes=0,
            input_size_bytes=file.size_bytes,
        )
        logger.info(
            "Run started.",
            extra={
                "input_file": file.name,
                "format": options.format.value,
                "capability": engine.capability.value,
            },
        )

        unsubscribe = engine.on(self.progress.relay)
        try:
            output = await self._execute(engine, run_id, run_number, file, options)
        except asyncio.CancelledError:
            self._fail("Run cancelled.")
            raise
        except ExecutionError as e:
            self._fail(str(e))
            raise
        except Exception as e:
            self._fail(str(e) or type(e).__name__)
            raise
        else:
            self._update(
                phase=Phase.DONE,
                progress=100,
                output=output,
                output_size_bytes=output.size_bytes,
            )
            logger.info(
                "Run completed.",
                extra={
                    "output_file": output.file_name,
                    "output_size_bytes": output.size_bytes,
                },
            )
            return output
        finally:
            unsubscribe()
            run_finished.set()
            reset_context_id(token)

    async def _execute(
        self,
        engine: TranscodeEngine,
        run_id: str,
        run_number: int,
        file: InputFile,
        options: ProcessOptions,
    ) -> OutputBlob:
        input_name = f"input-{run_number}.{input_extension(file.name)}"
        output_name = output_file_name(input_name, options.format)
        args = compile_command(input_name, options, engine.capability)
        logger.debug("Compiled engine arguments.", extra={"args": args})

        async with ResourceLedger(engine) as ledger:
            ledger.record(input_name)
            try:
                await engine.write_file(input_name, file.data)
                if self._cancel_requested:
                    raise RunCancelledError("Run cancelled.", run_id=run_id)

                ledger.record(output_name)
                exit_code = await engine.exec(args)
                if self._cancel_requested:
                    raise RunCancelledError(
                        "Run cancelled.", run_id=run_id, last_log=self.progress.last_log
                    )
                if exit_code != 0:
                    raise ExecutionError(
                        "Engine rejected the job.",
                        run_id=run_id,
                        last_log=self.progress.last_log,
                        exit_code=exit_code,
                    )

                data = await engine.read_file(output_name)
            except EngineAbortedError as e:
                raise RunCancelledError(
                    "Run cancelled.", run_id=run_id, last_log=self.progress.last_log
                ) from e
            except EngineError as e:
                raise ExecutionError(
                    "Engine failed during the run.",
                    run_id=run_id,
                    last_log=self.progress.last_log,
                ) from e

        container = effective_container(input_name, options.format)
        return OutputBlob(
            data,
            mime_type=mime_type_for_container(container),
            file_name=output_name,
        )

    def _fail(self, message: str) -> None:
        self._update(phase=Phase.FAILED, last_error=message)
        logger.error(
            "Run failed.",
            extra={"reason": message, "last_log": self._state.last_log},
        )

    # --- cancel / reset / close ---

    async def cancel(self) -> bool:
        """Ask the engine to abort the in-flight run and wait for it to end.

        Returns:
            True if a run was cancelled, False if nothing was running.
        """
        if self._state.phase is not Phase.RUNNING or self._engine is None:
            return False
        logger.info("Cancelling run.")
        self._cancel_requested = True
        await self._engine.terminate()
        if self._run_finished is not None:
            await self._run_finished.wait()
        return True

    def _release_output(self) -> None:
        output = self._state.output
        if output is not None:
            output.release()
            self._update(output=None, output_size_bytes=0)

    def reset(self) -> None:
        """Clear the last run's output, error and progress.

        Raises:
            SessionBusyError: While loading or running.
        """
        if self._state.phase in (Phase.RUNNING, Phase.LOADING):
            raise SessionBusyError(
                "Cannot reset while work is in flight.", phase=self._state.phase.value
            )
        self._release_output()
        self.progress.reset()
        loaded = self._engine is not None
        self._update(
            phase=Phase.READY if loaded else Phase.UNINITIALIZED,
            capability=self._state.capability if loaded else Capability.UNKNOWN,
            progress=0,
            last_log="",
            last_error=None,
            output_size_bytes=0,
            input_size_bytes=0,
        )

    async def close(self) -> None:
        """Cancel any run, release the output and tear the engine down."""
        await self.cancel()
        self._release_output()
        engine, self._engine = self._engine, None
        if engine is not None:
            await engine.close()
        self._update(
            phase=Phase.UNINITIALIZED,
            capability=Capability.UNKNOWN,
            progress=0,
            last_log="",
            last_error=None,
            input_size_bytes=0,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
