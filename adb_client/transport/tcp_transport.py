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

* :class:`TcpTransport`

    * :meth:`TcpTransport.bulk_read`
    * :meth:`TcpTransport.bulk_write`
    * :meth:`TcpTransport.close`
    * :meth:`TcpTransport.connect`

"""


import logging
import select
import socket

from .base_transport import BaseTransport
from .. import constants
from ..exceptions import AdbConnectionError, TcpTimeoutException


_LOGGER = logging.getLogger(__name__)


class TcpTransport(BaseTransport):
    """TCP connection to the adb server.

    Parameters
    ----------
    host : str
        The address of the adb server; may be an IP address or a host name
    port : int
        The adb server port (default is 5037)

    Attributes
    ----------
    _connection : socket.socket, None
        A socket connection to the adb server
    _host : str
        The address of the adb server; may be an IP address or a host name
    _port : int
        The adb server port

    """
    def __init__(self, host=constants.DEFAULT_ADB_SERVER_HOST, port=constants.DEFAULT_ADB_SERVER_PORT):
        self._host = host
        self._port = port

        self._connection = None

    def __repr__(self):
        return '{}({!r}, {!r})'.format(self.__class__.__name__, self._host, self._port)

    def close(self):
        """Close the socket connection.

        """
        if self._connection:
            _LOGGER.debug("Closing the connection to the adb server at %s:%d", self._host, self._port)
            try:
                self._connection.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

            self._connection.close()
            self._connection = None

    def connect(self, transport_timeout_s=None):
        """Create a socket connection to the adb server.

        Parameters
        ----------
        transport_timeout_s : float, None
            Set the timeout on the socket instance

        Raises
        ------
        AdbConnectionError
            The adb server refused the connection (e.g., it is not running)
        TcpTimeoutException
            Connecting timed out

        """
        try:
            self._connection = socket.create_connection((self._host, self._port), timeout=transport_timeout_s)
        except socket.timeout as exc:
            raise TcpTimeoutException('Connecting to the adb server at {}:{} timed out ({} seconds)'.format(self._host, self._port, transport_timeout_s)) from exc
        except OSError as exc:
            raise AdbConnectionError('Could not connect to the adb server at {}:{}: {}'.format(self._host, self._port, exc)) from exc

        _LOGGER.debug("Connected to the adb server at %s:%d", self._host, self._port)
        if transport_timeout_s:
            # Put the socket in non-blocking mode
            # https://docs.python.org/3/library/socket.html#socket.socket.settimeout
            self._connection.setblocking(False)

    def bulk_read(self, numbytes, transport_timeout_s=None):
        """Receive data from the socket.

        Parameters
        ----------
        numbytes : int
            The maximum amount of data to be received
        transport_timeout_s : float, None
            When the timeout argument is omitted, ``select.select`` blocks until at least one file descriptor is ready. A time-out value of zero specifies a poll and never blocks.

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
        if self._connection is None:
            raise AdbConnectionError('Not connected to the adb server at {}:{}'.format(self._host, self._port))

        readable, _, _ = select.select([self._connection], [], [], transport_timeout_s)
        if not readable:
            raise TcpTimeoutException('Reading from the adb server at {}:{} timed out ({} seconds)'.format(self._host, self._port, transport_timeout_s))

        try:
            data = self._connection.recv(numbytes)
        except OSError as exc:
            raise AdbConnectionError('Reading from the adb server at {}:{} failed: {}'.format(self._host, self._port, exc)) from exc

        if not data:
            _LOGGER.debug("The adb server at %s:%d closed the connection", self._host, self._port)

        return data

    def bulk_write(self, data, transport_timeout_s=None):
        """Send data to the socket.

        Parameters
        ----------
        data : bytes
            The data to be sent
        transport_timeout_s : float, None
            When the timeout argument is omitted, ``select.select`` blocks until at least one file descriptor is ready. A time-out value of zero specifies a poll and never blocks.

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
        if self._connection is None:
            raise AdbConnectionError('Not connected to the adb server at {}:{}'.format(self._host, self._port))

        _, writeable, _ = select.select([], [self._connection], [], transport_timeout_s)
        if not writeable:
            raise TcpTimeoutException('Sending data to the adb server at {}:{} timed out after {} seconds. No data was sent.'.format(self._host, self._port, transport_timeout_s))

        try:
            return self._connection.send(data)
        except OSError as exc:
            raise AdbConnectionError('Sending data to the adb server at {}:{} failed: {}'.format(self._host, self._port, exc)) from exc
