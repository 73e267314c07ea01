from .ffmpeg_engine import FFmpegEngine, FFmpegEngineLoader
from .interface import (
    Capability,
    EngineEvent,
    EngineListener,
    EngineLoader,
    LogEvent,
    ProgressEvent,
    TranscodeEngine,
)
from .loading import (
    HostEnvironment,
    Loaded,
    LoadFailed,
    LoadResult,
    detect_host_environment,
    load_engine,
)

__all__ = [
    "Capability",
    "EngineEvent",
    "EngineListener",
    "EngineLoader",
    "FFmpegEngine",
    "FFmpegEngineLoader",
    "HostEnvironment",
    "LoadFailed",
    "LoadResult",
    "Loaded",
    "LogEvent",
    "ProgressEvent",
    "TranscodeEngine",
    "detect_host_environment",
    "load_engine",
]
