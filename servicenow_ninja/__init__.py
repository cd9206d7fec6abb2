"""ServiceNow Ninja - documentation crawler and knowledge search backend."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("servicenow-ninja")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for development without install
