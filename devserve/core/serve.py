"""Serve orchestration: dispatch to a backend, announce, report.

The flow for one serve session:

1. fire ``watch:before`` hooks
2. normalize the raw CLI options into a :class:`ServeConfig`
3. load the project and dispatch on its type
4. announce the server for DevApp (background, best effort)
5. report local/external URLs and open a browser if asked
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import webbrowser
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

import typer

from devserve.adapters.base import AppScriptsOptions, ServeBackend, ServeDetails
from devserve.adapters.ionic1 import Ionic1Backend
from devserve.adapters.ionic_angular import IonicAngularBackend
from devserve.capabilities.discovery.announcer import (
    PublisherFactory,
    announce,
    devapp_active,
    devapp_descriptor,
)
from devserve.capabilities.discovery.publisher import Publisher
from devserve.core.errors import FatalError
from devserve.core.options import IONIC_LAB_URL, ServeConfig, normalize
from devserve.core.project import PROJECT_FILE, Project, ProjectType

logger = logging.getLogger(__name__)

Hook = Callable[["ServeEnvironment"], "Awaitable[None] | None"]
CleanupCallback = Callable[[], Awaitable[None]]


def open_browser(url: str, app: str | None = None) -> None:
    """Open *url* without waiting for the browser to exit."""
    try:
        browser = webbrowser.get(app) if app else webbrowser.get()
    except webbrowser.Error:
        logger.warning("Browser %r not available, using the default browser", app)
        browser = webbrowser.get()
    browser.open(url, new=2)


@dataclass
class ServeEnvironment:
    """Collaborators and session state for one serve invocation."""

    loader: Any  # anything with ``async load() -> Project``
    ionic1: ServeBackend = field(default_factory=Ionic1Backend)
    ionic_angular: ServeBackend = field(default_factory=IonicAngularBackend)
    publisher_factory: PublisherFactory = Publisher
    browser_opener: Callable[[str, str | None], None] = open_browser
    echo: Callable[[str], None] = typer.echo
    before_watch: list[Hook] = field(default_factory=list)
    discovery_task: asyncio.Task | None = field(default=None, init=False)
    _cleanup_callbacks: list[CleanupCallback] = field(
        default_factory=list, init=False, repr=False,
    )

    def add_cleanup_callback(self, callback: CleanupCallback) -> None:
        self._cleanup_callbacks.append(callback)

    async def shutdown(self) -> None:
        """Run cleanup callbacks, most recently registered first."""
        while self._cleanup_callbacks:
            callback = self._cleanup_callbacks.pop()
            try:
                await callback()
            except Exception:
                logger.exception("Cleanup callback failed")


async def fire_hooks(env: ServeEnvironment, hooks: list[Hook]) -> None:
    for hook in hooks:
        result = hook(env)
        if inspect.isawaitable(result):
            await result


def unsupported_type_message(project_type: str) -> str:
    message = f"Cannot perform Ionic serve/watch for project type: {project_type}.\n"
    if project_type == ProjectType.CUSTOM.value:
        message += (
            "Since you're using the custom project type, this command won't work. "
            "devserve doesn't know how to serve custom projects.\n\n"
        )
    message += (
        "If you'd like devserve to try to detect your project type, you can "
        f"unset the type attribute in {PROJECT_FILE}.\n"
    )
    return message


async def dispatch(env: ServeEnvironment, project: Project, config: ServeConfig) -> ServeDetails:
    """Start the backend for ``project.type``.

    Only ionic1 and ionic-angular can be served; anything else is a
    FatalError and no backend is touched.
    """
    if project.type == ProjectType.IONIC1:
        env.add_cleanup_callback(env.ionic1.stop)
        return await env.ionic1.serve(project, config)

    if project.type == ProjectType.IONIC_ANGULAR:
        options = AppScriptsOptions(
            config=config,
            target="cordova" if config.iscordovaserve else None,
            platform=config.platform,
        )
        env.add_cleanup_callback(env.ionic_angular.stop)
        return await env.ionic_angular.serve(project, options)

    raise FatalError(unsupported_type_message(project.type))


def local_url(details: ServeDetails) -> str:
    return f"http://localhost:{details.port}"


def report(details: ServeDetails, config: ServeConfig) -> str:
    """Human-readable summary of where the dev server can be reached."""
    lines = [
        "Development server running!",
        f"Local: {local_url(details)}",
    ]
    if details.external_addresses:
        external = ", ".join(
            f"http://{address}:{details.port}" for address in details.external_addresses
        )
        lines.append(f"External: {external}")
    if config.basic_auth:
        lines.append(f"Basic Auth: {config.basic_auth[0]} / {config.basic_auth[1]}")
    return "\n".join(lines)


def build_open_url(url: str, config: ServeConfig) -> str:
    """URL to open in the browser.

    Segments are joined with no separator; each optional segment carries
    its own leading delimiter.
    """
    parts = [url]
    if config.lab:
        parts.append(IONIC_LAB_URL)
    if config.browser_option:
        parts.append(config.browser_option)
    if config.platform:
        parts += ["?ionicplatform=", config.platform]
    return "".join(parts)


def _start_discovery(env: ServeEnvironment, project: Project, port: int) -> None:
    descriptor = devapp_descriptor(project.name, port)
    task = asyncio.create_task(announce(descriptor, env.publisher_factory))
    env.discovery_task = task

    async def _stop() -> None:
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return
        publisher = task.result()
        if publisher is not None:
            await publisher.stop()

    env.add_cleanup_callback(_stop)


async def serve(
    env: ServeEnvironment,
    options: Mapping[str, Any],
    platform: str | None = None,
) -> ServeDetails:
    """Run one serve session and return what the backend bound."""
    await fire_hooks(env, env.before_watch)

    config = normalize(options, platform)
    project = await env.loader.load()
    logger.info("Serving %s (%s) from %s", project.name, project.type, project.directory)

    details = await dispatch(env, project, config)

    if devapp_active(config):
        _start_discovery(env, project, config.port)

    env.echo(report(details, config))

    # app-scripts opens the browser itself
    if project.type != ProjectType.IONIC_ANGULAR and config.open:
        env.browser_opener(build_open_url(local_url(details), config), config.browser)

    return details
