"""DevApp announcement: best-effort discovery of the running dev server."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from devserve.capabilities.discovery.publisher import Publisher
from devserve.core.options import ServeConfig

logger = logging.getLogger(__name__)

DEVAPP_NAMESPACE = "devapp"
DEVAPP_PATH = "/?devapp=true"

PublisherFactory = Callable[[str, str, int], Publisher]


@dataclass(frozen=True)
class DiscoveryServiceDescriptor:
    namespace: str
    name: str
    port: int
    path: str


def devapp_active(config: ServeConfig) -> bool:
    """DevApp is announced unless disabled or serving for a Cordova build."""
    return config.devapp and not config.iscordovaserve


def devapp_descriptor(project_name: str, port: int) -> DiscoveryServiceDescriptor:
    return DiscoveryServiceDescriptor(
        namespace=DEVAPP_NAMESPACE,
        name=f"{project_name}@{port}",
        port=port,
        path=DEVAPP_PATH,
    )


def _log_service_error(err: BaseException) -> None:
    logger.debug("Error in DevApp service: %s", err, exc_info=err)


async def announce(
    descriptor: DiscoveryServiceDescriptor,
    publisher_factory: PublisherFactory = Publisher,
) -> Publisher | None:
    """Start advertising *descriptor*, once.

    Never raises. Returns the running publisher, or None when it could not
    be started.
    """
    try:
        service = publisher_factory(descriptor.namespace, descriptor.name, descriptor.port)
        service.path = descriptor.path
        service.on_error(_log_service_error)
        await service.start()
    except Exception as e:
        logger.debug("Could not publish DevApp service: %s", e, exc_info=True)
        return None

    logger.info("DevApp channel: %s", descriptor.name)
    return service
