"""playtrace runtime package: best-effort gameplay telemetry client."""

from importlib import metadata

from .config import DEFAULT_SERVER_URL, REQUEST_TIMEOUT_S, PlaytraceSettings, settings

__all__ = ["DEFAULT_SERVER_URL", "REQUEST_TIMEOUT_S", "PlaytraceSettings", "settings", "__version__"]


def _load_version() -> str:
    try:
        version = metadata.version("playtrace")
        return str(version) if version is not None else "0.0.0"
    except metadata.PackageNotFoundError:
        return "0.0.0"


__version__ = _load_version()
