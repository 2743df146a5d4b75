"""Tests for the DevApp announcer and the zeroconf publisher."""
from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from devserve.capabilities.discovery.announcer import (
    DEVAPP_PATH,
    announce,
    devapp_active,
    devapp_descriptor,
)
from devserve.capabilities.discovery.publisher import Publisher
from devserve.core.options import normalize


class TestActivation:
    @pytest.mark.parametrize("options,expected", [
        ({}, True),
        ({"devapp": False}, False),
        ({"iscordovaserve": True}, False),
        ({"iscordovaserve": True, "devapp": True}, False),
    ])
    def test_matrix(self, options, expected):
        assert devapp_active(normalize(options)) is expected


class TestDescriptor:
    def test_fields(self):
        d = devapp_descriptor("myApp", 8100)
        assert d.namespace == "devapp"
        assert d.name == "myApp@8100"
        assert d.port == 8100
        assert d.path == DEVAPP_PATH


class TestAnnounce:
    @pytest.mark.asyncio
    async def test_starts_publisher_once(self):
        service = MagicMock()
        service.start = AsyncMock()
        factory = MagicMock(return_value=service)

        result = await announce(devapp_descriptor("app", 8100), factory)

        assert result is service
        factory.assert_called_once_with("devapp", "app@8100", 8100)
        assert service.path == "/?devapp=true"
        service.on_error.assert_called_once()
        service.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_failure_swallowed(self, caplog):
        service = MagicMock()
        service.start = AsyncMock(side_effect=OSError("no multicast route"))
        with caplog.at_level(logging.DEBUG):
            result = await announce(devapp_descriptor("app", 8100), MagicMock(return_value=service))
        assert result is None
        service.start.assert_awaited_once()
        assert "Could not publish DevApp service" in caplog.text

    @pytest.mark.asyncio
    async def test_runtime_error_handler_swallows(self, caplog):
        service = MagicMock()
        service.start = AsyncMock()
        await announce(devapp_descriptor("app", 8100), MagicMock(return_value=service))

        handler = service.on_error.call_args.args[0]
        with caplog.at_level(logging.DEBUG):
            handler(RuntimeError("socket closed"))
        assert "Error in DevApp service" in caplog.text


def _fake_zeroconf(register_result=None, register_error=None) -> MagicMock:
    zc = MagicMock()
    if register_error is not None:
        zc.async_register_service = AsyncMock(side_effect=register_error)
    else:
        zc.async_register_service = AsyncMock(return_value=register_result)
    zc.async_close = AsyncMock()
    return zc


class TestPublisher:
    def test_names(self):
        pub = Publisher("devapp", "app@8100", 8100, addresses=[])
        assert pub.service_type == "_devapp._tcp.local."
        assert pub.service_name == "app@8100._devapp._tcp.local."
        assert pub.path == "/"
        assert pub.is_running is False

    @pytest.mark.asyncio
    async def test_start_registers_service(self):
        done = asyncio.get_running_loop().create_future()
        done.set_result(None)
        zc = _fake_zeroconf(register_result=done)
        pub = Publisher("devapp", "app@8100", 8100, addresses=["192.168.1.5"])
        pub.path = "/?devapp=true"

        with patch("devserve.capabilities.discovery.publisher.AsyncZeroconf", return_value=zc):
            await pub.start()

        info = zc.async_register_service.await_args.args[0]
        assert info.type == "_devapp._tcp.local."
        assert info.name == "app@8100._devapp._tcp.local."
        assert info.port == 8100
        assert b"path=/?devapp=true" in info.text
        assert info.parsed_addresses() == ["192.168.1.5"]
        assert pub.is_running

        await pub.stop()
        zc.async_close.assert_awaited_once()
        assert pub.is_running is False

    @pytest.mark.asyncio
    async def test_start_failure_closes_and_raises(self):
        zc = _fake_zeroconf(register_error=RuntimeError("name conflict"))
        pub = Publisher("devapp", "app@8100", 8100, addresses=[])

        with patch("devserve.capabilities.discovery.publisher.AsyncZeroconf", return_value=zc):
            with pytest.raises(RuntimeError, match="name conflict"):
                await pub.start()

        zc.async_close.assert_awaited_once()
        assert pub.is_running is False

    @pytest.mark.asyncio
    async def test_broadcast_error_reaches_handlers(self):
        broadcast = asyncio.get_running_loop().create_future()
        zc = _fake_zeroconf(register_result=broadcast)
        pub = Publisher("devapp", "app@8100", 8100, addresses=[])
        errors: list[BaseException] = []
        pub.on_error(errors.append)

        with patch("devserve.capabilities.discovery.publisher.AsyncZeroconf", return_value=zc):
            await pub.start()

        err = OSError("network down")
        broadcast.set_exception(err)
        await asyncio.sleep(0)

        assert errors == [err]
        await pub.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_broadcast(self):
        broadcast = asyncio.get_running_loop().create_future()
        zc = _fake_zeroconf(register_result=broadcast)
        pub = Publisher("devapp", "app@8100", 8100, addresses=[])
        errors: list[BaseException] = []
        pub.on_error(errors.append)

        with patch("devserve.capabilities.discovery.publisher.AsyncZeroconf", return_value=zc):
            await pub.start()
        await pub.stop()
        await asyncio.sleep(0)

        assert broadcast.cancelled()
        assert errors == []

    @pytest.mark.asyncio
    async def test_cancel_during_registration_closes(self):
        zc = _fake_zeroconf()

        async def probing(info):
            await asyncio.Event().wait()

        zc.async_register_service = AsyncMock(side_effect=probing)
        pub = Publisher("devapp", "app@8100", 8100, addresses=[])

        with patch("devserve.capabilities.discovery.publisher.AsyncZeroconf", return_value=zc):
            task = asyncio.create_task(pub.start())
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        zc.async_close.assert_awaited_once()
        assert pub.is_running is False
