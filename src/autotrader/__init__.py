"""Core package for the autonomous-trader portfolio sync and scanning stack."""

from importlib.metadata import version

__all__ = ["__version__"]

try:
    __version__ = version("autonomous-trader")
except Exception:  # pragma: no cover - package not installed in dev mode yet.
    __version__ = "0.0.0"
