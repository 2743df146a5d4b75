"""Local-network service publisher backed by zeroconf (mDNS/DNS-SD).

A :class:`Publisher` advertises one service instance, e.g.
``myapp@8100._devapp._tcp.local.``, with the URL path companion apps should
open carried in the TXT record.
"""
from __future__ import annotations

import asyncio
import logging
import socket
from typing import Callable

from zeroconf import IPVersion
from zeroconf.asyncio import AsyncServiceInfo, AsyncZeroconf

from devserve.core.network import get_external_ipv4_addresses

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException], None]


class Publisher:
    """Advertises ``name`` in the ``namespace`` service family on ``port``."""

    def __init__(
        self,
        namespace: str,
        name: str,
        port: int,
        addresses: list[str] | None = None,
    ) -> None:
        self.namespace = namespace
        self.name = name
        self.port = port
        self.path = "/"
        self._addresses = addresses
        self._zeroconf: AsyncZeroconf | None = None
        self._info: AsyncServiceInfo | None = None
        self._broadcast: asyncio.Future | None = None
        self._error_handlers: list[ErrorHandler] = []

    @property
    def service_type(self) -> str:
        return f"_{self.namespace}._tcp.local."

    @property
    def service_name(self) -> str:
        return f"{self.name}.{self.service_type}"

    @property
    def is_running(self) -> bool:
        return self._zeroconf is not None

    def on_error(self, handler: ErrorHandler) -> None:
        """Register a callback for errors raised after :meth:`start`."""
        self._error_handlers.append(handler)

    def _emit_error(self, err: BaseException) -> None:
        for handler in self._error_handlers:
            handler(err)

    def _on_broadcast_done(self, fut: asyncio.Future) -> None:
        if fut.cancelled():
            return
        err = fut.exception()
        if err is not None:
            self._emit_error(err)

    async def start(self) -> None:
        """Register the service. Raises if registration is rejected."""
        addresses = self._addresses
        if addresses is None:
            addresses = get_external_ipv4_addresses()

        self._info = AsyncServiceInfo(
            self.service_type,
            self.service_name,
            port=self.port,
            properties={"path": self.path},
            parsed_addresses=addresses,
            server=f"{socket.gethostname()}.local.",
        )
        self._zeroconf = AsyncZeroconf(ip_version=IPVersion.V4Only)
        try:
            broadcast = await self._zeroconf.async_register_service(self._info)
        except BaseException:
            # includes cancellation while zeroconf is still probing
            await self.stop()
            raise

        # Announcements keep going in the background after registration
        self._broadcast = asyncio.ensure_future(broadcast)
        self._broadcast.add_done_callback(self._on_broadcast_done)
        logger.info("Publishing %s on port %d", self.service_name, self.port)

    async def stop(self) -> None:
        """Withdraw the service and release the mDNS sockets."""
        if self._broadcast and not self._broadcast.done():
            self._broadcast.cancel()
        if self._zeroconf:
            await self._zeroconf.async_close()
            logger.info("Stopped publishing %s", self.service_name)
        self._broadcast = None
        self._zeroconf = None
        self._info = None
