# Copyright (c) 2021 Jeff Irion and contributors
#
# This file is part of the adb-client package.  It incorporates work
# covered by the following license notice:
#
#
#   Copyright 2014 Google Inc. All rights reserved.
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""A class for creating a socket connection with the adb server and sending and receiving data.

* :class:`TcpTransportAsync`

    * :meth:`TcpTransportAsync.bulk_read`
    * :meth:`TcpTransportAsync.bulk_write`
    * :meth:`TcpTransportAsync.close`
    * :meth:`TcpTransportAsync.connect`

"""


import asyncio
import logging

from .base_transport_async import BaseTransportAsync
from .. import constants
from ..exceptions import AdbConnectionError, TcpTimeoutException


_LOGGER = logging.getLogger(__name__)


class TcpTransportAsync(BaseTransportAsync):
    """TCP connection to the adb server.

    Parameters
    ----------
    host : str
        The address of the adb server; may be an IP address or a host name
    port : int
        The adb server port (default is 5037)
    default_transport_timeout_s : float, None
        Default timeout in seconds for TCP reads and writes, or ``None``

    Attributes
    ----------
    _default_transport_timeout_s : float, None
        Default timeout in seconds for TCP reads and writes, or ``None``
    _host : str
        The address of the adb server; may be an IP address or a host name
    _port : int
        The adb server port
    _reader : StreamReader, None
        Object for reading data from the socket
    _writer : StreamWriter, None
        Object for writing data to the socket

    """
    def __init__(self, host=constants.DEFAULT_ADB_SERVER_HOST, port=constants.DEFAULT_ADB_SERVER_PORT, default_transport_timeout_s=None):
        self._host = host
        self._port = port
        self._default_transport_timeout_s = default_transport_timeout_s

        self._reader = None
        self._writer = None

    def __repr__(self):
        return '{}({!r}, {!r})'.format(self.__class__.__name__, self._host, self._port)

    async def close(self):
        """Close the socket connection.

        """
        if self._writer:
            _LOGGER.debug("Closing the connection to the adb server at %s:%d", self._host, self._port)
            try:
                self._writer.close()
                await self._writer.wait_closed()
            except OSError:
                pass

        self._reader = None
        self._writer = None

    async def connect(self, transport_timeout_s=None):
        """Create a socket connection to the adb server.

        Parameters
        ----------
        transport_timeout_s : float, None
            Timeout for connecting to the socket; if it is ``None``, then it will block until the operation completes

        Raises
        ------
        AdbConnectionError
            The adb server refused the connection (e.g., it is not running)
        TcpTimeoutException
            Connecting timed out

        """
        timeout = self._default_transport_timeout_s if transport_timeout_s is None else transport_timeout_s

        try:
            self._reader, self._writer = await asyncio.wait_for(asyncio.open_connection(self._host, self._port), timeout)
        except asyncio.TimeoutError as exc:
            raise TcpTimeoutException('Connecting to the adb server at {}:{} timed out ({} seconds)'.format(self._host, self._port, timeout)) from exc
        except OSError as exc:
            raise AdbConnectionError('Could not connect to the adb server at {}:{}: {}'.format(self._host, self._port, exc)) from exc

        _LOGGER.debug("Connected to the adb server at %s:%d", self._host, self._port)

    async def bulk_read(self, numbytes, transport_timeout_s=None):
        """Receive data from the socket.

        Parameters
        ----------
        numbytes : int
            The maximum amount of data to be received
        transport_timeout_s : float, None
            Timeout for reading data from the socket; if it is ``None``, then it will block until the read operation completes

        Returns
        -------
        bytes
            The received data; ``b''`` if the adb server closed the connection

        Raises
        ------
        AdbConnectionError
            The socket is not connected, or the connection was reset
        TcpTimeoutException
            Reading timed out.

        """
        if self._reader is None:
            raise AdbConnectionError('Not connected to the adb server at {}:{}'.format(self._host, self._port))

        timeout = self._default_transport_timeout_s if transport_timeout_s is None else transport_timeout_s

        try:
            data = await asyncio.wait_for(self._reader.read(numbytes), timeout)
        except asyncio.TimeoutError as exc:
            raise TcpTimeoutException('Reading from the adb server at {}:{} timed out ({} seconds)'.format(self._host, self._port, timeout)) from exc
        except OSError as exc:
            raise AdbConnectionError('Reading from the adb server at {}:{} failed: {}'.format(self._host, self._port, exc)) from exc

        if not data:
            _LOGGER.debug("The adb server at %s:%d closed the connection", self._host, self._port)

        return data

    async def bulk_write(self, data, transport_timeout_s=None):
        """Send data to the socket.

        Parameters
        ----------
        data : bytes
            The data to be sent
        transport_timeout_s : float, None
            Timeout for writing data to the socket; if it is ``None``, then it will block until the write operation completes

        Returns
        -------
        int
            The number of bytes sent

        Raises
        ------
        AdbConnectionError
            The socket is not connected, or the connection was reset
        TcpTimeoutException
            Sending data timed out.  No data was sent.

        """
        if self._writer is None:
            raise AdbConnectionError('Not connected to the adb server at {}:{}'.format(self._host, self._port))

        timeout = self._default_transport_timeout_s if transport_timeout_s is None else transport_timeout_s

        try:
            self._writer.write(data)
            await asyncio.wait_for(self._writer.drain(), timeout)
        except asyncio.TimeoutError as exc:
            raise TcpTimeoutException('Sending data to the adb server at {}:{} timed out after {} seconds. No data was sent.'.format(self._host, self._port, timeout)) from exc
        except OSError as exc:
            raise AdbConnectionError('Sending data to the adb server at {}:{} failed: {}'.format(self._host, self._port, exc)) from exc

        return len(data)
