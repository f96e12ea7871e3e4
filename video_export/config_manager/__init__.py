"""Configuration loading for the video export pipeline."""

from .settings import EnvironmentOverrides, ExportSettings, load_settings, read_environment_overrides

__all__ = [
    "EnvironmentOverrides",
    "ExportSettings",
    "load_settings",
    "read_environment_overrides",
]
