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

"""A socket to the adb server that speaks the host protocol and the sync protocol.

.. rubric:: Contents

* :class:`AdbSocket`

    * :meth:`AdbSocket.close`
    * :meth:`AdbSocket.connect`
    * :meth:`AdbSocket.read`
    * :meth:`AdbSocket.read_adb_response`
    * :meth:`AdbSocket.read_some`
    * :meth:`AdbSocket.read_string`
    * :meth:`AdbSocket.read_sync_length`
    * :meth:`AdbSocket.read_sync_response`
    * :meth:`AdbSocket.read_sync_string`
    * :meth:`AdbSocket.read_until_close`
    * :meth:`AdbSocket.send`
    * :meth:`AdbSocket.send_adb_request`
    * :meth:`AdbSocket.send_sync_request`
    * :meth:`AdbSocket.send_sync_setup`
    * :meth:`AdbSocket.set_device`

"""


import logging
import struct
import time

from . import constants
from . import exceptions
from .hidden_helpers import _AdbTransactionInfo
from .sync_message import SyncMessage, pack_header, unpack_command_id


_LOGGER = logging.getLogger(__name__)


class AdbSocket(object):
    """A connection to the adb server.

    Parameters
    ----------
    transport : BaseTransport
        A user-provided transport for communicating with the adb server; must be an instance of a subclass of :class:`~adb_client.transport.base_transport.BaseTransport`
    transport_timeout_s : float, None
        Timeout in seconds for sending and receiving data, or ``None``
    read_timeout_s : float
        The total time in seconds to wait for a read to complete

    Attributes
    ----------
    _available : bool
        Whether the socket is connected
    _info : _AdbTransactionInfo
        The timeouts for this connection
    _transport : BaseTransport
        The transport that is used to send and receive data

    """
    def __init__(self, transport, transport_timeout_s=None, read_timeout_s=constants.DEFAULT_READ_TIMEOUT_S):
        self._transport = transport
        self._info = _AdbTransactionInfo(transport_timeout_s, read_timeout_s)
        self._available = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def available(self):
        """Whether or not the socket is connected.

        Returns
        -------
        bool
            Whether or not the socket is connected

        """
        return self._available

    def close(self):
        """Close the connection via the provided transport's ``close()`` method.

        """
        self._available = False
        self._transport.close()

    def connect(self):
        """Connect to the adb server via the provided transport's ``connect()`` method.

        """
        self._transport.close()
        self._transport.connect(self._info.transport_timeout_s)
        self._available = True

    # ======================================================================= #
    #                                                                         #
    #                                Raw bytes                                #
    #                                                                         #
    # ======================================================================= #
    def send(self, data):
        """Send ``data`` to the adb server.

        Parameters
        ----------
        data : bytes
            The data to send

        Raises
        ------
        adb_client.exceptions.AdbConnectionError
            The socket is not connected

        """
        if not self._available:
            raise exceptions.AdbConnectionError("Data not sent because a connection to the adb server has not been established.  (Did you call `AdbSocket.connect()`?)")

        _LOGGER.debug("bulk_write(%d): %.1000r", len(data), data)
        view = memoryview(data)
        while view:
            sent = self._transport.bulk_write(bytes(view), self._info.transport_timeout_s)
            view = view[sent:]

    def read(self, length):
        """Read exactly ``length`` bytes from the adb server.

        Parameters
        ----------
        length : int
            We will read until we get this length of data

        Returns
        -------
        bytes
            The data that was read

        Raises
        ------
        adb_client.exceptions.AdbConnectionError
            The connection was closed before ``length`` bytes were received
        adb_client.exceptions.AdbTimeoutError
            Did not read ``length`` bytes in time

        """
        start = time.time()
        data = bytearray()

        while length > 0:
            temp = self.read_some(length)
            if not temp:
                raise exceptions.AdbConnectionError("The connection was closed after reading {} of {} bytes".format(len(data), len(data) + length))

            data += temp
            length -= len(temp)

            if length == 0:
                break

            if time.time() - start > self._info.read_timeout_s:
                # Timeout
                raise exceptions.AdbTimeoutError("Timeout: read {} of {} bytes (transport_timeout_s = {}, read_timeout_s = {})".format(len(data), len(data) + length, self._info.transport_timeout_s, self._info.read_timeout_s))

        return bytes(data)

    def read_some(self, numbytes):
        """Read at most ``numbytes`` bytes; an empty result means that the connection was closed.

        """
        if not self._available:
            raise exceptions.AdbConnectionError("Data not read because a connection to the adb server has not been established.  (Did you call `AdbSocket.connect()`?)")

        temp = self._transport.bulk_read(numbytes, self._info.transport_timeout_s)
        if temp:
            # Only log if `temp` is not empty
            _LOGGER.debug("bulk_read(%d): %.1000r", numbytes, temp)

        return temp

    def read_until_close(self, chunk_size=constants.MAX_CHUNK_SIZE):
        """Yield data from the adb server until it closes the connection.

        Parameters
        ----------
        chunk_size : int
            The maximum amount of data to read at a time

        Yields
        ------
        bytes
            The data that was read

        """
        while True:
            data = self.read_some(chunk_size)
            if not data:
                break

            yield data

    # ======================================================================= #
    #                                                                         #
    #                              Host protocol                              #
    #                                                                         #
    # ======================================================================= #
    def send_adb_request(self, request):
        """Send a host request: 4 hex digits with the length of ``request``, then ``request``.

        Parameters
        ----------
        request : str, bytes
            The request, e.g. ``'host:devices-l'``

        """
        if not isinstance(request, bytes):
            request = request.encode(constants.DEFAULT_ENCODING)

        self.send(b'%04X' % len(request) + request)

    def read_adb_response(self):
        """Read the status of the last host request.

        Raises
        ------
        adb_client.exceptions.AdbCommandFailureException
            The adb server replied with ``FAIL``
        adb_client.exceptions.InvalidResponseError
            The adb server replied with something other than ``OKAY`` or ``FAIL``

        """
        status = self.read(4)
        if status == constants.OKAY:
            return

        if status == constants.FAIL:
            message = self.read_string()
            _LOGGER.debug("The adb server replied FAIL: %s", message)
            raise exceptions.AdbCommandFailureException(message)

        raise exceptions.InvalidResponseError('Expected OKAY or FAIL, got {!r}'.format(status))

    def read_string(self):
        """Read a string that is prefixed by its length as 4 hex digits.

        Returns
        -------
        str
            The decoded string

        """
        length = int(self.read(constants.LENGTH_PREFIX_SIZE), 16)
        return self.read(length).decode(constants.DEFAULT_ENCODING, errors=constants.DECODE_ERRORS)

    def set_device(self, device):
        """Route the rest of this connection to ``device``.

        Parameters
        ----------
        device : DeviceData
            The device

        Raises
        ------
        adb_client.exceptions.DeviceNotFoundError
            The adb server does not know the device

        """
        self.send_adb_request('host:transport:{}'.format(device.serial))

        try:
            self.read_adb_response()
        except exceptions.AdbCommandFailureException as exc:
            if 'device not found' in str(exc).lower():
                raise exceptions.DeviceNotFoundError("The device '{}' was not found".format(device.serial)) from exc
            raise

    # ======================================================================= #
    #                                                                         #
    #                              Sync protocol                              #
    #                                                                         #
    # ======================================================================= #
    def send_sync_request(self, command_id, data=b'', value=None):
        """Send a sync request.

        Parameters
        ----------
        command_id : bytes
            The sync ID
        data : str, bytes
            The payload, e.g. a device path
        value : int, None
            The value for the length field of the header, if it is not the length of ``data``

        """
        self.send(SyncMessage(command_id, value, data).pack())

    def send_sync_setup(self, command_id, *values):
        """Send a sync header followed by extra little-endian words, as used by ``SND2`` and ``RCV2``.

        """
        self.send(pack_header(command_id, values[0]) + struct.pack('<{}I'.format(len(values) - 1), *values[1:]))

    def read_sync_response(self):
        """Read a 4-byte sync ID.

        Returns
        -------
        bytes
            The sync ID

        Raises
        ------
        adb_client.exceptions.InvalidCommandError
            The ID is not a known sync command

        """
        return unpack_command_id(self.read(4))

    def read_sync_length(self):
        """Read a little-endian 32-bit length."""
        return struct.unpack('<I', self.read(4))[0]

    def read_sync_string(self):
        """Read a string that is prefixed by its length as a little-endian 32-bit integer.

        Returns
        -------
        str
            The decoded string

        """
        length = self.read_sync_length()
        return self.read(length).decode(constants.DEFAULT_ENCODING, errors=constants.DECODE_ERRORS)
