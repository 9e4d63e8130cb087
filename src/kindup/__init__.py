"""kindup - provision Docker, kubectl and a kind cluster in a dev container."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kindup")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .main import main

__all__ = ["main", "__version__"]
