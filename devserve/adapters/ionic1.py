"""ionic1 backend: serves the project's ``www/`` directory with aiohttp.

Live reload is not provided; the server only hosts static files, forwards
configured proxies and optionally guards everything with basic auth.
"""
from __future__ import annotations

import logging
from pathlib import Path

import aiohttp
from aiohttp import web

from devserve.adapters.base import ServeDetails, resolve_external_addresses
from devserve.core.options import ServeConfig
from devserve.core.project import Project

logger = logging.getLogger(__name__)

WWW_DIR = "www"

# Headers the proxy must not copy between client and upstream
_SKIP_HEADERS = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade", "content-encoding",
    "content-length", "host",
}


def _basic_auth_middleware(username: str, password: str):
    @web.middleware
    async def middleware(request: web.Request, handler):
        header = request.headers.get("Authorization", "")
        try:
            auth = aiohttp.BasicAuth.decode(header) if header else None
        except ValueError:
            auth = None
        if auth is None or (auth.login, auth.password) != (username, password):
            return web.Response(
                status=401,
                text="Unauthorized",
                headers={"WWW-Authenticate": 'Basic realm="devserve"'},
            )
        return await handler(request)

    return middleware


def _static_handler(www: Path):
    root = www.resolve()

    async def handle(request: web.Request) -> web.StreamResponse:
        tail = request.match_info.get("tail", "")
        target = (root / tail).resolve()
        if root != target and root not in target.parents:
            raise web.HTTPForbidden()
        if target.is_dir():
            target = target / "index.html"
        if target.is_file():
            return web.FileResponse(target)
        # Client-side routes fall back to the app shell
        index = root / "index.html"
        if index.is_file():
            return web.FileResponse(index)
        raise web.HTTPNotFound()

    return handle


def _proxy_handler(prefix: str, proxy_url: str, sessions: list[aiohttp.ClientSession]):
    base = proxy_url.rstrip("/")

    async def handle(request: web.Request) -> web.StreamResponse:
        if not sessions:
            sessions.append(aiohttp.ClientSession())
        tail = request.match_info.get("tail", "")
        url = f"{base}/{tail}" if tail else base
        headers = {
            k: v for k, v in request.headers.items() if k.lower() not in _SKIP_HEADERS
        }
        body = await request.read()
        async with sessions[0].request(
            request.method, url, params=request.query, headers=headers,
            data=body or None, allow_redirects=False,
        ) as upstream:
            resp_headers = {
                k: v for k, v in upstream.headers.items() if k.lower() not in _SKIP_HEADERS
            }
            return web.Response(
                status=upstream.status, body=await upstream.read(), headers=resp_headers,
            )

    logger.info("Proxy added: %s => %s", prefix, proxy_url)
    return handle


def build_app(project: Project, config: ServeConfig) -> web.Application:
    """Create the aiohttp application for *project*."""
    middlewares = []
    if config.basic_auth:
        middlewares.append(_basic_auth_middleware(*config.basic_auth))
    app = web.Application(middlewares=middlewares)

    if config.proxy:
        sessions: list[aiohttp.ClientSession] = []
        for entry in project.proxies:
            prefix = str(entry.get("path", "")).rstrip("/")
            proxy_url = entry.get("proxyUrl")
            if not prefix or not proxy_url:
                logger.warning("Skipping invalid proxy entry: %s", entry)
                continue
            app.router.add_route(
                "*", prefix + "/{tail:.*}", _proxy_handler(prefix, proxy_url, sessions),
            )

        async def _close_sessions(_app: web.Application) -> None:
            for session in sessions:
                await session.close()

        app.on_cleanup.append(_close_sessions)

    app.router.add_get("/{tail:.*}", _static_handler(project.directory / WWW_DIR))
    return app


class Ionic1Backend:
    """aiohttp static server for ionic1 projects."""

    def __init__(self) -> None:
        self._runner: web.AppRunner | None = None

    @property
    def is_alive(self) -> bool:
        return self._runner is not None

    async def serve(self, project: Project, options: ServeConfig) -> ServeDetails:
        external = resolve_external_addresses(options)
        www = project.directory / WWW_DIR
        if not www.is_dir():
            logger.warning("%s does not exist; only proxies will respond", www)

        app = build_app(project, options)
        runner_kwargs = {} if options.serverlogs else {"access_log": None}
        self._runner = web.AppRunner(app, **runner_kwargs)
        await self._runner.setup()
        site = web.TCPSite(self._runner, options.address, options.port)
        await site.start()
        logger.info("Serving %s at %s:%d", www, options.address, options.port)

        return ServeDetails(port=options.port, external_addresses=external)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            logger.info("ionic1 server stopped")
        self._runner = None
