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

"""Transfer files to and from a device with the adb sync service, using asyncio.

.. rubric:: Contents

* :class:`SyncServiceAsync`

    * :meth:`SyncServiceAsync._open`
    * :meth:`SyncServiceAsync._pull`
    * :meth:`SyncServiceAsync._push`
    * :meth:`SyncServiceAsync.list`
    * :meth:`SyncServiceAsync.list_v2`
    * :meth:`SyncServiceAsync.pull`
    * :meth:`SyncServiceAsync.push`
    * :meth:`SyncServiceAsync.stat`
    * :meth:`SyncServiceAsync.stat_v2`

"""


from contextlib import asynccontextmanager
import logging
import os
import time

import aiofiles

from . import constants
from . import exceptions
from .hidden_helpers import check_cancelled, get_stream_size
from .models import DeviceState
from .progress import transport_progress
from .sync_message import unpack_stat, unpack_stat_v2


_LOGGER = logging.getLogger(__name__)


class _AsyncStreamWrapper(object):  # pylint: disable=too-few-public-methods
    """Give a blocking file-like object the ``read`` and ``write`` coroutines of an ``aiofiles`` file.

    """
    def __init__(self, stream):
        self._stream = stream

    def __getattr__(self, name):
        return getattr(self._stream, name)

    async def read(self, size=-1):
        """Read from the wrapped stream."""
        return self._stream.read(size)

    async def write(self, data):
        """Write to the wrapped stream."""
        return self._stream.write(data)


@asynccontextmanager
async def _open_local(local_path, mode):
    """Open a local path with ``aiofiles``, or wrap an already open stream.

    Parameters
    ----------
    local_path : str, BytesIO
        A path or a file-like object
    mode : str
        The mode for opening ``local_path``

    Yields
    ------
    stream
        An object with ``read`` and ``write`` coroutines

    """
    if isinstance(local_path, (str, bytes, os.PathLike)):
        async with aiofiles.open(local_path, mode) as stream:
            yield stream
    else:
        yield _AsyncStreamWrapper(local_path)


class SyncServiceAsync(object):
    """Run sync service operations on a device, using asyncio.

    Every operation opens its own connection via ``socket_factory`` and closes it when the operation is done.

    Parameters
    ----------
    socket_factory : function
        A coroutine function that takes no arguments and returns a connected :class:`~adb_client.adb_socket_async.AdbSocketAsync`
    device : DeviceData
        The device
    max_chunk_size : int
        The maximum size of a ``DATA`` chunk

    """
    def __init__(self, socket_factory, device, max_chunk_size=constants.MAX_CHUNK_SIZE):
        self._socket_factory = socket_factory
        self._device = device
        self._max_chunk_size = min(max_chunk_size, constants.MAX_CHUNK_SIZE)

    @property
    def device(self):
        """The device that this service operates on."""
        return self._device

    @property
    def max_chunk_size(self):
        """The maximum size of a ``DATA`` chunk."""
        return self._max_chunk_size

    def _check_online(self):
        if self._device.state is not DeviceState.ONLINE:
            raise exceptions.DeviceOfflineError('Device is offline')

    async def _open(self):
        """Open a connection to the adb server and start the sync service on the device.

        Returns
        -------
        AdbSocketAsync
            A socket that is ready for sync requests

        """
        self._check_online()

        socket = await self._socket_factory()
        try:
            await socket.set_device(self._device)
            await socket.send_adb_request('sync:')
            await socket.read_adb_response()
        except Exception:
            await socket.close()
            raise

        return socket

    # ======================================================================= #
    #                                                                         #
    #                                   Stat                                  #
    #                                                                         #
    # ======================================================================= #
    async def stat(self, device_path):
        """Get a file's ``stat()`` information.

        Parameters
        ----------
        device_path : str
            The file on the device for which we will get information

        Returns
        -------
        FileStatistics
            The mode, size, and modification time of the file

        """
        if not device_path:
            raise exceptions.DevicePathInvalidError("Cannot stat an empty device path")

        socket = await self._open()
        try:
            await socket.send_sync_request(constants.STAT, device_path)

            response = await socket.read_sync_response()
            if response != constants.STAT:
                raise exceptions.InvalidResponseError('The server returned an invalid sync response {!r}'.format(response))

            stats = unpack_stat(await socket.read(constants.STAT_SIZE), device_path)
        finally:
            await socket.close()

        if stats.mode == 0 and stats.size == 0 and stats.time == 0:
            raise exceptions.AdbFileNotFoundError("'{}' does not exist on the device".format(device_path))

        return stats

    async def stat_v2(self, device_path, follow_links=True):
        """Get a file's extended ``stat()`` information.

        Parameters
        ----------
        device_path : str
            The file on the device for which we will get information
        follow_links : bool
            Whether to report on the target of a symbolic link (``STA2``) or on the link itself (``LST2``)

        Returns
        -------
        FileStatisticsV2
            The extended file information

        """
        if not device_path:
            raise exceptions.DevicePathInvalidError("Cannot stat an empty device path")

        command_id = constants.STA2 if follow_links else constants.LST2

        socket = await self._open()
        try:
            await socket.send_sync_request(command_id, device_path)

            response = await socket.read_sync_response()
            if response != command_id:
                raise exceptions.InvalidResponseError('The server returned an invalid sync response {!r}'.format(response))

            stats = unpack_stat_v2(await socket.read(constants.STAT_V2_SIZE), device_path)
        finally:
            await socket.close()

        if stats.error == constants.ENOENT:
            raise exceptions.AdbFileNotFoundError("'{}' does not exist on the device".format(device_path))
        if stats.error:
            raise exceptions.AdbCommandFailureException("Unable to stat '{}': {}".format(device_path, os.strerror(stats.error)))

        return stats

    # ======================================================================= #
    #                                                                         #
    #                                   List                                  #
    #                                                                         #
    # ======================================================================= #
    def list(self, device_path):
        """Return a lazy directory listing of the given path.

        Use ``async for`` to iterate over the result; closing it early closes the connection.

        Parameters
        ----------
        device_path : str
            Directory to list

        Returns
        -------
        async_generator[FileStatistics]
            The entries in the directory, excluding ``.`` and ``..``

        """
        if not device_path:
            raise exceptions.DevicePathInvalidError("Cannot list an empty device path")
        self._check_online()

        return self._list(device_path, constants.LIST, constants.DENT, constants.STAT_SIZE, unpack_stat)

    def list_v2(self, device_path):
        """Return a lazy directory listing of the given path, with extended file information.

        """
        if not device_path:
            raise exceptions.DevicePathInvalidError("Cannot list an empty device path")
        self._check_online()

        return self._list(device_path, constants.LIS2, constants.DNT2, constants.STAT_V2_SIZE, unpack_stat_v2)

    async def _list(self, device_path, request_id, entry_id, record_size, unpack):
        socket = await self._open()
        try:
            await socket.send_sync_request(request_id, device_path)

            while True:
                response = await socket.read_sync_response()
                if response == constants.DONE:
                    break

                if response == constants.FAIL:
                    raise exceptions.AdbCommandFailureException("Unable to list '{}': {}".format(device_path, await socket.read_sync_string()))

                if response != entry_id:
                    raise exceptions.InvalidResponseError('The server returned an invalid sync response {!r}'.format(response))

                record = await socket.read(record_size)
                name = await socket.read_sync_string()
                if name in ('.', '..'):
                    continue

                yield unpack(record, name)
        finally:
            await socket.close()

    # ======================================================================= #
    #                                                                         #
    #                                   Pull                                  #
    #                                                                         #
    # ======================================================================= #
    async def pull(self, device_path, local_path, progress_callback=None, cancel_event=None, use_v2=False):
        """Pull a file from the device.

        Parameters
        ----------
        device_path : str
            The file on the device that will be pulled
        local_path : str, BytesIO
            The path or writable stream where the file will be downloaded
        progress_callback : function, None
            Callback method that accepts a :class:`~adb_client.models.SyncProgress`
        cancel_event : asyncio.Event, None
            If it is set, the transfer stops before the next chunk
        use_v2 : bool
            Whether to use ``RCV2`` and ``STA2``

        """
        if not device_path:
            raise exceptions.DevicePathInvalidError("Cannot pull from an empty device path")
        self._check_online()

        total_bytes = 0
        if progress_callback:
            total_bytes = (await (self.stat_v2(device_path) if use_v2 else self.stat(device_path))).size

        try:
            async with _open_local(local_path, 'wb') as stream:
                socket = await self._open()
                try:
                    await self._pull(socket, device_path, stream, progress_callback, total_bytes, cancel_event, use_v2)
                finally:
                    await socket.close()
        except OSError:
            _LOGGER.error("Unable to pull '%s' to %r", device_path, local_path)
            raise

    async def _pull(self, socket, device_path, stream, progress_callback, total_bytes, cancel_event, use_v2):
        """Pull a file from the device into the file-like ``stream``.

        """
        if use_v2:
            await socket.send_sync_request(constants.RCV2, device_path)
            await socket.send_sync_setup(constants.RCV2, constants.SYNC_FLAG_NONE)
        else:
            await socket.send_sync_request(constants.RECV, device_path)

        progress = transport_progress(progress_callback, total_bytes)
        next(progress)

        while True:
            check_cancelled(cancel_event)

            response = await socket.read_sync_response()
            if response == constants.DONE:
                break

            if response == constants.FAIL:
                raise exceptions.PullFailedError("Failed to pull '{}': {}".format(device_path, await socket.read_sync_string()))

            if response != constants.DATA:
                raise exceptions.InvalidResponseError('The server returned an invalid sync response {!r}'.format(response))

            size = await socket.read_sync_length()
            if size > self._max_chunk_size:
                raise exceptions.InvalidResponseError('The adb server is sending {} bytes of data, which exceeds the maximum chunk size {}'.format(size, self._max_chunk_size))

            data = await socket.read(size)
            await stream.write(data)
            progress.send(len(data))

    # ======================================================================= #
    #                                                                         #
    #                                   Push                                  #
    #                                                                         #
    # ======================================================================= #
    async def push(self, local_path, device_path, st_mode=constants.DEFAULT_PUSH_MODE, mtime=0, progress_callback=None, cancel_event=None, use_v2=False):
        """Push a file to the device.

        Parameters
        ----------
        local_path : str, BytesIO
            A filename or readable stream to push to the device
        device_path : str
            Destination on the device to write to
        st_mode : int
            Stat mode for the file on the device
        mtime : int
            Modification time to set on the file; 0 means the current time
        progress_callback : function, None
            Callback method that accepts a :class:`~adb_client.models.SyncProgress`
        cancel_event : asyncio.Event, None
            If it is set, the transfer stops before the next chunk
        use_v2 : bool
            Whether to use ``SND2``

        """
        if not device_path:
            raise exceptions.DevicePathInvalidError("Cannot push to an empty device path")
        if len(device_path.encode(constants.DEFAULT_ENCODING)) > constants.MAX_PATH_LENGTH:
            raise exceptions.DevicePathInvalidError("The device path '{}' exceeds the maximum path length {}".format(device_path, constants.MAX_PATH_LENGTH))
        self._check_online()

        try:
            async with _open_local(local_path, 'rb') as stream:
                total_bytes = get_stream_size(stream)

                socket = await self._open()
                try:
                    await self._push(socket, stream, device_path, st_mode, mtime, progress_callback, total_bytes, cancel_event, use_v2)
                finally:
                    await socket.close()
        except OSError:
            _LOGGER.error("Unable to push %r to '%s'", local_path, device_path)
            raise

    async def _push(self, socket, stream, device_path, st_mode, mtime, progress_callback, total_bytes, cancel_event, use_v2):
        """Push a file-like object to the device.

        Raises
        ------
        PushFailedError
            Raised on push failure.

        """
        if use_v2:
            await socket.send_sync_request(constants.SND2, device_path)
            await socket.send_sync_setup(constants.SND2, int(st_mode), constants.SYNC_FLAG_NONE)
        else:
            await socket.send_sync_request(constants.SEND, '{},{}'.format(device_path, int(st_mode)))

        progress = transport_progress(progress_callback, total_bytes)
        next(progress)

        while True:
            check_cancelled(cancel_event)

            data = await stream.read(self._max_chunk_size)
            if not data:
                break

            await socket.send_sync_request(constants.DATA, data)
            progress.send(len(data))

        if mtime == 0:
            mtime = int(time.time())

        # DONE doesn't send data, but it hides the modification time in the size field.
        await socket.send_sync_request(constants.DONE, value=mtime)

        response = await socket.read_sync_response()
        if response == constants.OKAY:
            return

        if response == constants.FAIL:
            raise exceptions.PushFailedError(await socket.read_sync_string())

        raise exceptions.InvalidResponseError('The server returned an invalid sync response {!r}'.format(response))
