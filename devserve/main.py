from __future__ import annotations

import asyncio
import logging
import signal
from importlib.metadata import entry_points
from typing import Optional

import typer

from devserve.adapters.base import ServeDetails
from devserve.adapters.ionic_angular import IonicAngularBackend
from devserve.config import Config
from devserve.core.errors import FatalError
from devserve.core.project import ProjectLoader
from devserve.core.serve import Hook, ServeEnvironment, serve
from devserve.core.start import hello_text, start_project
from devserve.storage.starter_store import StarterStore

HOOK_GROUP = "devserve.watch_before"

logger = logging.getLogger("devserve")

app = typer.Typer(
    help="Local dev server and project bootstrap for Ionic apps.",
    no_args_is_help=True,
)


def setup_logging(config: Config) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=handlers,
    )


def load_watch_hooks() -> list[Hook]:
    """Hooks installed by plugins under the ``devserve.watch_before`` entry point group."""
    hooks: list[Hook] = []
    for ep in entry_points(group=HOOK_GROUP):
        hooks.append(ep.load())
        logger.info("Loaded watch:before hook %s", ep.name)
    return hooks


async def run_serve(
    env: ServeEnvironment,
    options: dict,
    platform: str | None,
) -> ServeDetails:
    """Serve until SIGINT/SIGTERM, then shut the session down."""
    stop_event = asyncio.Event()

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    try:
        details = await serve(env, options, platform)
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        await env.shutdown()
    return details


def _fail(err: FatalError) -> typer.Exit:
    typer.secho(str(err), fg=typer.colors.RED, err=True)
    return typer.Exit(code=err.exit_code)


@app.command("serve")
def serve_command(
    platform: Optional[str] = typer.Argument(None, help="Platform to emulate (ios, android)."),
    project_dir: str = typer.Option(".", "--project-dir", "-d", help="Project root."),
    address: Optional[str] = typer.Option(None, "--address", help="Address to bind to."),
    port: Optional[str] = typer.Option(None, "--port", "-p", help="Dev server HTTP port."),
    livereload_port: Optional[str] = typer.Option(
        None, "--livereload-port", "-r", help="Live reload port.",
    ),
    dev_logger_port: Optional[str] = typer.Option(
        None, "--dev-logger-port", help="Dev logger port.",
    ),
    consolelogs: bool = typer.Option(False, "--consolelogs", "-c", help="Print app console logs."),
    serverlogs: bool = typer.Option(False, "--serverlogs", "-s", help="Print dev server logs."),
    livereload: bool = typer.Option(True, "--livereload/--nolivereload", help="Live reload."),
    proxy: bool = typer.Option(True, "--proxy/--noproxy", help="Forward configured proxies."),
    lab: bool = typer.Option(False, "--lab", "-l", help="Open Ionic Lab."),
    open_: bool = typer.Option(True, "--open/--no-open", help="Open a browser window."),
    browser: Optional[str] = typer.Option(None, "--browser", "-w", help="Browser to open."),
    browseroption: Optional[str] = typer.Option(
        None, "--browseroption", "-o", help="Path appended to the opened URL.",
    ),
    auth: Optional[str] = typer.Option(None, "--auth", help="Basic auth password."),
    env: Optional[str] = typer.Option(None, "--env", help="Environment name."),
    devapp: bool = typer.Option(True, "--devapp/--nodevapp", help="Announce for DevApp."),
    external_address_required: bool = typer.Option(
        False, "--external-address-required", hidden=True,
    ),
    iscordovaserve: bool = typer.Option(False, "--iscordovaserve", hidden=True),
) -> None:
    """Start a local dev server for app development/testing."""
    config = Config.from_env()
    setup_logging(config)

    options = {
        "address": address,
        "port": port,
        "livereload-port": livereload_port,
        "dev-logger-port": dev_logger_port,
        "consolelogs": consolelogs,
        "serverlogs": serverlogs,
        "livereload": livereload,
        "proxy": proxy,
        "lab": lab,
        "open": open_,
        "browser": browser,
        "browseroption": browseroption,
        "auth": auth,
        "env": env,
        "devapp": devapp,
        "externalAddressRequired": external_address_required,
        "iscordovaserve": iscordovaserve,
    }
    serve_env = ServeEnvironment(
        loader=ProjectLoader(project_dir),
        ionic_angular=IonicAngularBackend(config.app_scripts),
        before_watch=load_watch_hooks(),
    )
    try:
        asyncio.run(run_serve(serve_env, options, platform))
    except FatalError as e:
        raise _fail(e) from None
    except KeyboardInterrupt:
        pass


@app.command("start")
def start_command(
    name: str = typer.Argument(..., help="Name of the new project."),
    template: str = typer.Argument("tabs", help="Starter template."),
    type_: str = typer.Option("ionic-angular", "--type", help="Project type."),
    directory: Optional[str] = typer.Option(None, "--directory", help="Target directory."),
    list_templates: bool = typer.Option(False, "--list", "-l", help="List starter templates."),
) -> None:
    """Create a new project from a starter template."""
    config = Config.from_env()
    setup_logging(config)
    store = StarterStore()

    if list_templates:
        typer.echo(store.template_text())
        return

    try:
        project_dir = asyncio.run(start_project(
            name, template, type_, directory,
            branch=config.starter_branch,
            store=store,
            timeout=config.download_timeout,
        ))
    except FatalError as e:
        raise _fail(e) from None

    typer.echo(f"Project created in {project_dir}")
    typer.echo(hello_text())


def run() -> None:
    app()


if __name__ == "__main__":
    run()
