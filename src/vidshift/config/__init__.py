from .config import AppSettings, DebugMode, YamlFileFromFieldSource
from .job_config import JobConfig

__all__ = [
    "AppSettings",
    "DebugMode",
    "JobConfig",
    "YamlFileFromFieldSource",
]
