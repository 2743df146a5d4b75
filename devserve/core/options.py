"""Serve options: defaults and normalization of raw CLI options."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

BIND_ALL_ADDRESS = "0.0.0.0"
LOCAL_ADDRESSES = ("localhost", "127.0.0.1")

DEFAULT_SERVER_PORT = 8100
DEFAULT_LIVERELOAD_PORT = 35729
DEFAULT_DEV_LOGGER_PORT = 53703

IONIC_LAB_URL = "/ionic-lab"
BASIC_AUTH_USERNAME = "ionic"


@dataclass(frozen=True)
class ServeConfig:
    """Canonical serve options, built once per invocation."""

    address: str = BIND_ALL_ADDRESS
    port: int = DEFAULT_SERVER_PORT
    livereload_port: int = DEFAULT_LIVERELOAD_PORT
    notification_port: int = DEFAULT_DEV_LOGGER_PORT
    consolelogs: bool = False
    serverlogs: bool = False
    livereload: bool = True
    proxy: bool = True
    lab: bool = False
    open: bool = False
    iscordovaserve: bool = False
    external_address_required: bool = False
    devapp: bool = True
    browser: str | None = None
    browser_option: str | None = None
    basic_auth: tuple[str, str] | None = None
    env: str | None = None
    platform: str | None = None


def str2num(value: Any, default: int) -> int:
    """Parse *value* as a base-10 port number, falling back to *default*."""
    if value is None or isinstance(value, bool):
        return default
    try:
        num = int(str(value).strip(), 10)
    except ValueError:
        return default
    if not 0 <= num <= 65535:
        return default
    return num


def _opt_str(value: Any) -> str | None:
    return str(value) if value else None


def normalize(options: Mapping[str, Any], platform: str | None = None) -> ServeConfig:
    """Turn loosely-typed CLI options into a :class:`ServeConfig`.

    Never raises: every field has a deterministic default.
    """
    livereload = options.get("livereload")
    proxy = options.get("proxy")
    iscordovaserve = options.get("iscordovaserve")
    auth = options.get("auth")

    return ServeConfig(
        address=str(options["address"]) if options.get("address") else BIND_ALL_ADDRESS,
        port=str2num(options.get("port"), DEFAULT_SERVER_PORT),
        livereload_port=str2num(options.get("livereload-port"), DEFAULT_LIVERELOAD_PORT),
        notification_port=str2num(options.get("dev-logger-port"), DEFAULT_DEV_LOGGER_PORT),
        consolelogs=bool(options.get("consolelogs")),
        serverlogs=bool(options.get("serverlogs")),
        livereload=livereload if isinstance(livereload, bool) else True,
        proxy=proxy if isinstance(proxy, bool) else True,
        lab=bool(options.get("lab")),
        open=bool(options.get("open")),
        iscordovaserve=iscordovaserve if isinstance(iscordovaserve, bool) else False,
        external_address_required=bool(options.get("externalAddressRequired")),
        # opt-out: only an explicit falsy value disables the DevApp channel
        devapp="devapp" not in options or options["devapp"] is None or bool(options["devapp"]),
        browser=_opt_str(options.get("browser")),
        browser_option=_opt_str(options.get("browseroption")),
        basic_auth=(BASIC_AUTH_USERNAME, str(auth)) if auth else None,
        env=_opt_str(options.get("env")),
        platform=platform or None,
    )
