"""Power Insight: telemetry-derived operational insights for small solar installations."""

try:
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("power-insight")
except Exception:
    __version__ = "dev"
