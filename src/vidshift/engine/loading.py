"""Engine loading with multi-thread to single-thread fallback.

``load_engine`` runs an explicit attempt sequence and returns a tagged
result instead of signalling the outcome through exceptions. The
multi-threaded build is only tried when the host can run it.
"""

from dataclasses import dataclass, field
import logging
import os

from ..exceptions import EngineError
from .interface import Capability, EngineLoader, TranscodeEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HostEnvironment:
    """What the host offers to the engine.

    Attributes:
        shared_memory_available: Whether multi-threaded builds can run here.
        cpu_count: Number of logical CPUs detected.
    """

    shared_memory_available: bool
    cpu_count: int = 1


def detect_host_environment(enable_multithreading: bool = True) -> HostEnvironment:
    """Inspect the host; multi-threading needs more than one CPU and must be enabled."""
    cpu_count = os.cpu_count() or 1
    return HostEnvironment(
        shared_memory_available=enable_multithreading and cpu_count > 1,
        cpu_count=cpu_count,
    )


@dataclass(frozen=True, slots=True)
class Loaded:
    """A successful load."""

    engine: TranscodeEngine
    capability: Capability


@dataclass(frozen=True, slots=True)
class LoadFailed:
    """Every attempted build failed.

    Attributes:
        reason: Human-readable summary of the last failure.
        errors: The error raised by each attempt, in attempt order.
    """

    reason: str
    errors: list[Exception] = field(default_factory=list[Exception])


LoadResult = Loaded | LoadFailed


def capability_attempts(host: HostEnvironment) -> list[Capability]:
    """Return the capabilities to try, in order."""
    if host.shared_memory_available:
        return [Capability.MULTI_THREADED, Capability.SINGLE_THREADED]
    return [Capability.SINGLE_THREADED]


async def load_engine(loader: EngineLoader, host: HostEnvironment) -> LoadResult:
    """Try each capability in turn and return the first build that loads.

    A failed multi-threaded attempt is logged and silently followed by the
    single-threaded one.

    Args:
        loader: Source of engine builds.
        host: Host capabilities deciding whether multi-threading is attempted.

    Returns:
        ``Loaded`` with the engine and its capability, or ``LoadFailed``.
    """
    errors: list[Exception] = []
    for capability in capability_attempts(host):
        logger.debug(
            "Attempting engine load.", extra={"capability": capability.value}
        )
        try:
            engine = await loader.load(capability)
        except EngineError as e:
            logger.warning(
                "Engine load attempt failed.",
                extra={"capability": capability.value},
                exc_info=e,
            )
            errors.append(e)
            continue
        logger.info("Engine loaded.", extra={"capability": capability.value})
        return Loaded(engine=engine, capability=capability)

    reason = str(errors[-1]) if errors else "No engine build attempted."
    return LoadFailed(reason=reason, errors=errors)
