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

"""A client for the adb server, using asyncio.

.. rubric:: Contents

* :class:`AdbClientAsync`

    * :meth:`AdbClientAsync.create_socket`
    * :meth:`AdbClientAsync.get_devices`
    * :meth:`AdbClientAsync.shell`
    * :meth:`AdbClientAsync.sync_service`

"""


import logging

from . import constants
from . import exceptions
from .adb_socket_async import AdbSocketAsync
from .models import DeviceData
from .sync_service_async import SyncServiceAsync
from .transport.tcp_transport_async import TcpTransportAsync


_LOGGER = logging.getLogger(__name__)


class AdbClientAsync(object):
    """A client for the adb server, using asyncio.

    Every method call opens its own connection to the adb server.

    Parameters
    ----------
    host : str
        The address of the adb server
    port : int
        The adb server port
    default_transport_timeout_s : float, None
        Default timeout in seconds for TCP reads and writes, or ``None``
    read_timeout_s : float
        The total time in seconds to wait for a read to complete

    """
    def __init__(self, host=constants.DEFAULT_ADB_SERVER_HOST, port=constants.DEFAULT_ADB_SERVER_PORT, default_transport_timeout_s=None, read_timeout_s=constants.DEFAULT_READ_TIMEOUT_S):
        self._host = host
        self._port = port
        self._default_transport_timeout_s = default_transport_timeout_s
        self._read_timeout_s = read_timeout_s

    async def create_socket(self):
        """Open a new connection to the adb server.

        Returns
        -------
        AdbSocketAsync
            A connected socket

        """
        socket = AdbSocketAsync(TcpTransportAsync(self._host, self._port, self._default_transport_timeout_s), self._default_transport_timeout_s, self._read_timeout_s)
        await socket.connect()
        return socket

    async def get_devices(self):
        """Get the devices that are known to the adb server.

        Returns
        -------
        list[DeviceData]
            The devices

        """
        async with await self.create_socket() as socket:
            await socket.send_adb_request('host:devices-l')
            await socket.read_adb_response()
            reply = await socket.read_string()

        return [DeviceData.from_adb_data(line) for line in reply.splitlines() if line.strip()]

    async def shell(self, device, command, receiver=None, decode=True):
        """Run a shell command on the device and wait for it to finish.

        Parameters
        ----------
        device : DeviceData
            The device
        command : str
            The shell command
        receiver : MultiLineReceiver, None
            If provided, every line of the output is passed to ``receiver`` and then ``receiver.flush()`` is called
        decode : bool
            Whether to decode the output

        Returns
        -------
        str, bytes
            The output of the command

        """
        _LOGGER.debug("Running shell command on %s: %s", device.serial, command)

        async with await self.create_socket() as socket:
            await socket.set_device(device)
            await socket.send_adb_request('shell:{}'.format(command))
            await socket.read_adb_response()

            try:
                output = b''.join([data async for data in socket.read_until_close()])
            except exceptions.TcpTimeoutException as exc:
                raise exceptions.ShellCommandUnresponsiveError("The command '{}' did not respond in time".format(command)) from exc

        if receiver is not None:
            for line in output.decode(constants.DEFAULT_ENCODING, errors=constants.DECODE_ERRORS).splitlines():
                receiver.add_output(line)
            receiver.flush()

        if decode:
            return output.decode(constants.DEFAULT_ENCODING, errors=constants.DECODE_ERRORS)

        return output

    def sync_service(self, device):
        """Get a :class:`~adb_client.sync_service_async.SyncServiceAsync` for ``device`` that uses this client's connections."""
        return SyncServiceAsync(self.create_socket, device)
