"""ionic-angular backend: runs ``ionic-app-scripts serve`` as a subprocess.

app-scripts does the watching, live reload and browser opening itself; this
module only builds its command line, waits for the port to open and stops
the process on shutdown.
"""
from __future__ import annotations

import asyncio
import logging
import shutil

from devserve.adapters.base import AppScriptsOptions, ServeDetails, resolve_external_addresses
from devserve.core.options import BIND_ALL_ADDRESS
from devserve.core.project import Project
from devserve.core.subprocess_tracker import track, untrack

logger = logging.getLogger(__name__)

DEFAULT_APP_SCRIPTS = ["npx", "ionic-app-scripts"]


def build_serve_args(options: AppScriptsOptions) -> list[str]:
    """Translate *options* into ``ionic-app-scripts serve`` arguments."""
    cfg = options.config
    args = [
        "serve",
        "--address", cfg.address,
        "--port", str(cfg.port),
        "--livereload-port", str(cfg.livereload_port),
        "--dev-logger-port", str(cfg.notification_port),
    ]
    if not cfg.open:
        args.append("--nobrowser")
    if not cfg.livereload:
        args.append("--nolivereload")
    if not cfg.proxy:
        args.append("--noproxy")
    if cfg.lab:
        args.append("--lab")
    if cfg.consolelogs:
        args.append("--consolelogs")
    if cfg.serverlogs:
        args.append("--serverlogs")
    if cfg.iscordovaserve:
        args.append("--iscordovaserve")
    if cfg.browser:
        args += ["--browser", cfg.browser]
    if cfg.browser_option:
        args += ["--browseroption", cfg.browser_option]
    if cfg.env:
        args += ["--env", cfg.env]
    if options.platform:
        args += ["--platform", options.platform]
    if options.target:
        args += ["--target", options.target]
    return args


async def _check_port(host: str, port: int) -> bool:
    """Return True if a TCP connection to host:port succeeds."""
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=1.0,
        )
        writer.close()
        await writer.wait_closed()
        return True
    except (OSError, asyncio.TimeoutError):
        return False


class IonicAngularBackend:
    """Manages an ``ionic-app-scripts serve`` subprocess."""

    def __init__(self, command: list[str] | None = None) -> None:
        self._command = list(command or DEFAULT_APP_SCRIPTS)
        self._process: asyncio.subprocess.Process | None = None
        self._drain_tasks: list[asyncio.Task] = []

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def serve(self, project: Project, options: AppScriptsOptions) -> ServeDetails:
        cfg = options.config
        external = resolve_external_addresses(cfg)

        executable = shutil.which(self._command[0])
        if not executable:
            raise RuntimeError(
                f"{self._command[0]} not found in PATH. Install Node.js and run "
                "'npm install' in the project to get @ionic/app-scripts."
            )

        cmd = [executable, *self._command[1:], *build_serve_args(options)]
        logger.info("Starting app-scripts: %s (cwd=%s)", " ".join(cmd), project.directory)
        self._process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(project.directory),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        track(self._process.pid)

        verbose = cfg.serverlogs or cfg.consolelogs
        self._drain_tasks = [
            asyncio.create_task(self._drain(self._process.stdout, "out", verbose)),
            asyncio.create_task(self._drain(self._process.stderr, "err", verbose)),
        ]

        host = "127.0.0.1" if cfg.address == BIND_ALL_ADDRESS else cfg.address
        await self._wait_for_port(host, cfg.port)

        if self._process.returncode is not None:
            code = self._process.returncode
            await self.stop()
            raise RuntimeError(f"ionic-app-scripts exited with code {code}")

        return ServeDetails(port=cfg.port, external_addresses=external)

    # ------------------------------------------------------------------

    @staticmethod
    async def _drain(stream: asyncio.StreamReader | None, label: str, verbose: bool) -> None:
        """Forward subprocess output to the log so its pipes never fill."""
        if not stream:
            return
        while True:
            line = await stream.readline()
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.log(logging.INFO if verbose else logging.DEBUG,
                           "app-scripts(%s): %s", label, text)

    async def _wait_for_port(self, host: str, port: int, timeout: float = 30.0) -> None:
        """Wait until app-scripts accepts connections or exits."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while loop.time() < deadline:
            if await _check_port(host, port):
                logger.info("app-scripts ready (port %d open)", port)
                return
            if self._process is None or self._process.returncode is not None:
                return
            await asyncio.sleep(0.5)

        logger.warning("Timed out waiting for app-scripts (port %d)", port)

    async def stop(self) -> None:
        """Terminate the app-scripts process, killing it if it lingers."""
        proc = self._process
        if proc and proc.returncode is None:
            try:
                proc.terminate()
                await asyncio.wait_for(proc.wait(), timeout=5)
            except (asyncio.TimeoutError, ProcessLookupError):
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
            logger.info("Stopped app-scripts process")
        if proc:
            untrack(proc.pid)

        for task in self._drain_tasks:
            task.cancel()
        self._drain_tasks = []
        self._process = None
