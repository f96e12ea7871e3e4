"""Browser launch strategies for the capture session.

Each deployment environment gets a strategy that knows how to obtain a
Chromium build there. :func:`launch_browser` probes the environment, tries
every applicable strategy in order and keeps the first browser that starts.
"""

from __future__ import annotations

import os
from typing import Callable, List, Mapping, Optional, Protocol, Sequence, Tuple

from playwright.sync_api import Browser, Playwright

from video_export import logging_manager as log_mgr
from video_export.config_manager import ExportSettings
from video_export.errors import BrowserLaunchError, LaunchAttempt

logger = log_mgr.get_logger().getChild("capture.browser")

BASE_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)

CONTAINER_ARGS: tuple[str, ...] = BASE_ARGS + (
    "--disable-software-rasterizer",
    "--disable-extensions",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--hide-scrollbars",
    "--mute-audio",
    "--no-zygote",
)

SERVERLESS_ARGS: tuple[str, ...] = CONTAINER_ARGS + ("--single-process",)


class LaunchStrategy(Protocol):
    """One way of starting Chromium in a particular environment."""

    name: str

    def is_applicable(self, environ: Mapping[str, str]) -> bool:
        ...

    def launch(self, playwright: Playwright, environ: Mapping[str, str]) -> Browser:
        ...


def _flag(environ: Mapping[str, str], *names: str) -> bool:
    return any(environ.get(name) for name in names)


def _viewport_args(settings: ExportSettings) -> tuple[str, ...]:
    return (f"--window-size={settings.frame_width},{settings.frame_height}",)


class ServerlessLaunchStrategy:
    """Function runtimes that ship a trimmed Chromium binary."""

    name = "serverless"

    def __init__(self, settings: ExportSettings) -> None:
        self._settings = settings

    def is_applicable(self, environ: Mapping[str, str]) -> bool:
        return _flag(environ, "VERCEL", "AWS_LAMBDA_FUNCTION_NAME")

    def launch(self, playwright: Playwright, environ: Mapping[str, str]) -> Browser:
        executable = environ.get("CHROMIUM_EXECUTABLE_PATH")
        if not executable:
            raise RuntimeError("CHROMIUM_EXECUTABLE_PATH is not set")
        return playwright.chromium.launch(
            headless=True,
            executable_path=executable,
            args=list(SERVERLESS_ARGS + _viewport_args(self._settings)),
        )


class ContainerLaunchStrategy:
    """Containers and production hosts with a system Chromium."""

    name = "container"

    def __init__(
        self,
        settings: ExportSettings,
        *,
        path_exists: Callable[[str], bool] = os.path.exists,
    ) -> None:
        self._settings = settings
        self._path_exists = path_exists

    def is_applicable(self, environ: Mapping[str, str]) -> bool:
        if _flag(environ, "RAILWAY_ENVIRONMENT", "RAILWAY_PUBLIC_DOMAIN"):
            return True
        if any(
            (environ.get(name) or "").lower() == "production"
            for name in ("VIDEO_EXPORT_ENV", "APP_ENV", "NODE_ENV")
        ):
            return True
        return self._path_exists("/.dockerenv")

    def launch(self, playwright: Playwright, environ: Mapping[str, str]) -> Browser:
        executable = environ.get("PLAYWRIGHT_CHROMIUM_EXECUTABLE_PATH") or environ.get(
            "PUPPETEER_EXECUTABLE_PATH"
        )
        return playwright.chromium.launch(
            headless=True,
            executable_path=executable or None,
            args=list(CONTAINER_ARGS + _viewport_args(self._settings)),
        )


class LocalLaunchStrategy:
    """Playwright's bundled Chromium; always applicable."""

    name = "local"

    def __init__(self, settings: ExportSettings) -> None:
        self._settings = settings

    def is_applicable(self, environ: Mapping[str, str]) -> bool:
        return True

    def launch(self, playwright: Playwright, environ: Mapping[str, str]) -> Browser:
        return playwright.chromium.launch(
            headless=True, args=list(BASE_ARGS + _viewport_args(self._settings))
        )


def default_launch_strategies(settings: ExportSettings) -> List[LaunchStrategy]:
    return [
        ServerlessLaunchStrategy(settings),
        ContainerLaunchStrategy(settings),
        LocalLaunchStrategy(settings),
    ]


def launch_browser(
    playwright: Playwright,
    strategies: Sequence[LaunchStrategy],
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[Browser, str]:
    """Return the first browser an applicable strategy manages to start.

    Raises :class:`BrowserLaunchError` listing every failed attempt when no
    strategy succeeds.
    """

    env = os.environ if environ is None else environ
    attempts: List[LaunchAttempt] = []
    for strategy in strategies:
        if not strategy.is_applicable(env):
            continue
        logger.debug(
            "Launching browser",
            extra={"event": "capture.browser.launch", "attributes": {"strategy": strategy.name}},
        )
        try:
            browser = strategy.launch(playwright, env)
        except Exception as exc:
            attempts.append(LaunchAttempt(strategy.name, str(exc) or type(exc).__name__))
            logger.warning(
                "Browser launch strategy %s failed",
                strategy.name,
                extra={
                    "event": "capture.browser.launch.failed",
                    "attributes": {"strategy": strategy.name, "error": str(exc)},
                },
            )
            continue
        logger.info(
            "Browser launched",
            extra={"event": "capture.browser.launched", "attributes": {"strategy": strategy.name}},
        )
        return browser, strategy.name

    raise BrowserLaunchError(attempts)


__all__ = [
    "ContainerLaunchStrategy",
    "LaunchStrategy",
    "LocalLaunchStrategy",
    "ServerlessLaunchStrategy",
    "default_launch_strategies",
    "launch_browser",
]
