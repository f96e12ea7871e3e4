"""Frame capture service backed by a Playwright-driven Chromium session."""

from .browser import (
    ContainerLaunchStrategy,
    LaunchStrategy,
    LocalLaunchStrategy,
    ServerlessLaunchStrategy,
    default_launch_strategies,
    launch_browser,
)
from .renderer import FrameRenderer, RenderOptions, build_render_url, frame_filename
from .session import RenderSession, ResponseCache

__all__ = [
    "ContainerLaunchStrategy",
    "FrameRenderer",
    "LaunchStrategy",
    "LocalLaunchStrategy",
    "RenderOptions",
    "RenderSession",
    "ResponseCache",
    "ServerlessLaunchStrategy",
    "build_render_url",
    "default_launch_strategies",
    "frame_filename",
    "launch_browser",
]
