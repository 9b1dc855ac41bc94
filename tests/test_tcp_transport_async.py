import asyncio
import unittest
from unittest.mock import patch

from adb_client.exceptions import AdbConnectionError, TcpTimeoutException
from adb_client.transport.tcp_transport_async import TcpTransportAsync

from .async_patchers import FakeStreamReader, FakeStreamWriter, async_patch
from .async_wrapper import awaiter
from . import patchers


@patchers.ASYNC_SKIPPER
class TestTcpTransportAsync(unittest.TestCase):
    def setUp(self):
        """Create a ``TcpTransportAsync``.

        """
        self.transport = TcpTransportAsync(default_transport_timeout_s=2)

    @awaiter
    async def test_close(self):
        await self.transport.close()
        self.assertIsNone(self.transport._writer)

    @awaiter
    async def test_connect(self):
        with async_patch('asyncio.open_connection', return_value=(True, True)) as open_connection:
            await self.transport.connect(transport_timeout_s=1)
            open_connection.assert_called_once_with('127.0.0.1', 5037)

    @awaiter
    async def test_connect_close(self):
        with async_patch('asyncio.open_connection', return_value=(FakeStreamReader(), FakeStreamWriter())):
            await self.transport.connect(transport_timeout_s=1)
            self.assertIsNotNone(self.transport._writer)

        await self.transport.close()
        self.assertIsNone(self.transport._reader)
        self.assertIsNone(self.transport._writer)

    @awaiter
    async def test_connect_close_catch_oserror(self):
        with async_patch('asyncio.open_connection', return_value=(FakeStreamReader(), FakeStreamWriter())):
            await self.transport.connect(transport_timeout_s=1)
            self.assertIsNotNone(self.transport._writer)

        with patch.object(FakeStreamWriter, 'close', side_effect=OSError):
            await self.transport.close()
            self.assertIsNone(self.transport._reader)
            self.assertIsNone(self.transport._writer)

    @awaiter
    async def test_connect_with_timeout(self):
        with self.assertRaises(TcpTimeoutException):
            with async_patch('asyncio.open_connection', side_effect=asyncio.TimeoutError):
                await self.transport.connect()

    @awaiter
    async def test_bulk_read(self):
        with async_patch('asyncio.open_connection', return_value=(FakeStreamReader(), FakeStreamWriter())):
            await self.transport.connect(transport_timeout_s=1)

        self.assertEqual(await self.transport.bulk_read(4, transport_timeout_s=1), b'TEST')

        with self.assertRaises(TcpTimeoutException):
            with patch.object(FakeStreamReader, 'read', side_effect=asyncio.TimeoutError):
                await self.transport.bulk_read(4)

    @awaiter
    async def test_bulk_write(self):
        with async_patch('asyncio.open_connection', return_value=(FakeStreamReader(), FakeStreamWriter())):
            await self.transport.connect(transport_timeout_s=1)

        self.assertEqual(await self.transport.bulk_write(b'TEST', transport_timeout_s=1), 4)

        with self.assertRaises(TcpTimeoutException):
            with patch.object(FakeStreamWriter, 'write', side_effect=asyncio.TimeoutError):
                await self.transport.bulk_write(b'TEST', transport_timeout_s=1)

    @awaiter
    async def test_connect_refused(self):
        with async_patch('asyncio.open_connection', side_effect=ConnectionRefusedError(111, 'Connection refused')):
            with self.assertRaises(AdbConnectionError) as cm:
                await self.transport.connect(transport_timeout_s=1)

        self.assertIn('127.0.0.1:5037', str(cm.exception))
        self.assertIsNone(self.transport._writer)

    @awaiter
    async def test_not_connected(self):
        with self.assertRaises(AdbConnectionError):
            await self.transport.bulk_read(4)

        with self.assertRaises(AdbConnectionError):
            await self.transport.bulk_write(b'OKAY')

    @awaiter
    async def test_connection_reset(self):
        with async_patch('asyncio.open_connection', return_value=(FakeStreamReader(), FakeStreamWriter())):
            await self.transport.connect(transport_timeout_s=1)

        with patch.object(FakeStreamReader, 'read', side_effect=ConnectionResetError):
            with self.assertRaises(AdbConnectionError):
                await self.transport.bulk_read(4, transport_timeout_s=1)

        with patch.object(FakeStreamWriter, 'write', side_effect=BrokenPipeError):
            with self.assertRaises(AdbConnectionError):
                await self.transport.bulk_write(b'OKAY', transport_timeout_s=1)
