"""Shared types for serve backends."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from devserve.core.errors import FatalError
from devserve.core.network import get_external_ipv4_addresses
from devserve.core.options import BIND_ALL_ADDRESS, LOCAL_ADDRESSES, ServeConfig
from devserve.core.project import Project

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServeDetails:
    """What a backend ended up binding."""

    port: int
    external_addresses: tuple[str, ...] = ()


@dataclass(frozen=True)
class AppScriptsOptions:
    """Options for the ionic-angular backend: serve config plus build target."""

    config: ServeConfig
    target: str | None = None  # "cordova" when serving for a Cordova build
    platform: str | None = None


@runtime_checkable
class ServeBackend(Protocol):
    """Common interface for project-type backends."""

    async def serve(self, project: Project, options) -> ServeDetails: ...

    async def stop(self) -> None: ...


def resolve_external_addresses(config: ServeConfig) -> tuple[str, ...]:
    """Addresses other devices can reach the server on.

    Raises FatalError when ``external_address_required`` is set and none
    are available.
    """
    if config.address == BIND_ALL_ADDRESS:
        addresses = tuple(get_external_ipv4_addresses())
    elif config.address in LOCAL_ADDRESSES:
        addresses = ()
    else:
        addresses = (config.address,)

    if config.external_address_required and not addresses:
        raise FatalError(
            "No external network address is available for the dev server.\n"
            f"It is bound to {config.address}. Connect to a network, or bind "
            f"to {BIND_ALL_ADDRESS} with '--address {BIND_ALL_ADDRESS}'."
        )
    logger.debug("External addresses: %s", ", ".join(addresses) or "none")
    return addresses
