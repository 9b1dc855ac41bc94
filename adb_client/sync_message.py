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

"""Functions and a class for packing and unpacking sync service messages.

.. rubric:: Contents

* :class:`SyncMessage`

    * :meth:`SyncMessage.pack`

* :func:`pack_header`
* :func:`pack_stat`
* :func:`pack_stat_v2`
* :func:`unpack_command_id`
* :func:`unpack_header`
* :func:`unpack_stat`
* :func:`unpack_stat_v2`

"""


import struct

from . import constants
from .exceptions import InvalidCommandError
from .models import FileStatistics, FileStatisticsV2


def pack_header(command_id, value):
    """Pack an 8-byte sync header.

    Parameters
    ----------
    command_id : bytes
        A 4-byte sync ID, e.g. :const:`adb_client.constants.SEND`
    value : int
        The length of the payload that follows, or the modification time for a push ``DONE``

    Returns
    -------
    bytes
        The packed header

    """
    return struct.pack(constants.SYNC_HEADER_FORMAT, constants.SYNC_ID_TO_WIRE[command_id], value)


def unpack_command_id(data):
    """Convert a 4-byte sync ID read from the wire to a known command.

    Raises
    ------
    InvalidCommandError
        The ID is not a known sync command

    """
    data = bytes(data)
    if data not in constants.SYNC_ID_TO_WIRE:
        raise InvalidCommandError('Unknown sync command: {!r}'.format(data))
    return data


def unpack_header(data):
    """Unpack an 8-byte sync header.

    Parameters
    ----------
    data : bytes
        The received header

    Returns
    -------
    command_id : bytes
        The sync ID
    value : int
        The length or value field

    Raises
    ------
    InvalidCommandError
        The ID is not a known sync command

    """
    wire, value = struct.unpack(constants.SYNC_HEADER_FORMAT, data)
    try:
        return constants.SYNC_WIRE_TO_ID[wire], value
    except KeyError:
        raise InvalidCommandError('Unknown sync command: {!r}'.format(bytes(data[:4])))


def pack_stat(mode, size, time):
    """Pack a 12-byte V1 stat record."""
    return struct.pack(constants.STAT_FORMAT, mode, size, time)


def unpack_stat(data, path=''):
    """Unpack a 12-byte V1 stat record.

    Parameters
    ----------
    data : bytes
        The record
    path : str
        The path to store in the result

    Returns
    -------
    FileStatistics
        The unpacked record

    """
    mode, size, time = struct.unpack(constants.STAT_FORMAT, data)
    return FileStatistics(path, mode, size, time)


def pack_stat_v2(error=0, device=0, inode=0, mode=0, link_count=0, uid=0, gid=0, size=0, access_time=0, modified_time=0, changed_time=0):
    """Pack a 68-byte V2 stat record."""
    return struct.pack(constants.STAT_V2_FORMAT, error, device, inode, mode, link_count, uid, gid, size, access_time, modified_time, changed_time)


def unpack_stat_v2(data, path=''):
    """Unpack a 68-byte V2 stat record.

    The fields are read in wire order: error, dev, ino, mode, nlink, uid, gid, size, atime, mtime, ctime.

    """
    return FileStatisticsV2(path, *struct.unpack(constants.STAT_V2_FORMAT, data))


class SyncMessage(object):
    """A sync request: a header followed by an optional payload.

    Parameters
    ----------
    command : bytes
        The sync ID
    arg0 : int, None
        The header value; if ``None``, the length of ``data`` is used
    data : str, bytes
        The payload

    """
    def __init__(self, command, arg0=None, data=b''):
        if not isinstance(data, bytes):
            data = data.encode(constants.DEFAULT_ENCODING)

        self.command = command
        self.arg0 = len(data) if arg0 is None else arg0
        self.data = data

    def pack(self):
        """Returns this message in an over-the-wire format.

        Returns
        -------
        bytes
            The header and the payload

        """
        return pack_header(self.command, self.arg0) + self.data
