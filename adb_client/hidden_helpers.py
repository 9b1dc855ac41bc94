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

"""Implement helpers for the sync service and package manager classes.

.. rubric:: Contents

* :class:`_AdbTransactionInfo`
* :func:`_open_bytesio`
* :func:`check_cancelled`
* :func:`format_command`
* :func:`get_remote_temp_path`
* :func:`get_session_id`
* :func:`get_stream_size`

"""


from contextlib import contextmanager
import io
import logging
import os
import posixpath

from . import constants
from . import exceptions


_LOGGER = logging.getLogger(__name__)


@contextmanager
def _open_bytesio(stream, *args, **kwargs):  # pylint: disable=unused-argument
    """A context manager for a BytesIO object that does nothing.

    Parameters
    ----------
    stream : BytesIO
        The BytesIO stream
    args : list
        Unused positional arguments
    kwargs : dict
        Unused keyword arguments

    Yields
    ------
    stream : BytesIO
        The `stream` input parameter

    """
    yield stream


def check_cancelled(cancel_event):
    """Raise an exception if ``cancel_event`` is set.

    Parameters
    ----------
    cancel_event : threading.Event, asyncio.Event, None
        The cancellation flag; ``None`` means the operation is never cancelled

    Raises
    ------
    OperationCancelledError
        ``cancel_event`` is set

    """
    if cancel_event is not None and cancel_event.is_set():
        raise exceptions.OperationCancelledError('The operation was cancelled')


def get_remote_temp_path(local_path):
    """Get the path on the device where ``local_path`` will be staged for installation.

    Parameters
    ----------
    local_path : str
        A path to a local file

    Returns
    -------
    str
        ``/data/local/tmp/<basename>``

    """
    return posixpath.join(constants.TEMP_INSTALLATION_DIRECTORY, os.path.basename(local_path))


def get_stream_size(stream):
    """Get the total size of a stream that is about to be read.

    Parameters
    ----------
    stream
        A file-like object

    Returns
    -------
    int
        The number of bytes from the current position to the end of the stream, or 0 if it cannot be determined

    """
    try:
        size = os.fstat(stream.fileno()).st_size
    except (AttributeError, OSError, io.UnsupportedOperation):
        pass
    else:
        try:
            return max(size - stream.tell(), 0)
        except (AttributeError, OSError, io.UnsupportedOperation):
            return size

    try:
        position = stream.tell()
        size = stream.seek(0, io.SEEK_END)
        stream.seek(position)
        return size - position
    except (AttributeError, OSError, io.UnsupportedOperation, TypeError):
        _LOGGER.debug("Unable to determine the size of %r", stream)
        return 0


class _AdbTransactionInfo(object):  # pylint: disable=too-few-public-methods
    """A class for storing the timeouts used during a single exchange with the adb server.

    Note that ``self.transport_timeout_s <= self.read_timeout_s``.

    Parameters
    ----------
    transport_timeout_s : float, None
        Timeout in seconds for sending and receiving data, or ``None``
    read_timeout_s : float
        The total time in seconds to wait for the requested amount of data

    """
    def __init__(self, transport_timeout_s=None, read_timeout_s=constants.DEFAULT_READ_TIMEOUT_S):
        self.read_timeout_s = read_timeout_s
        self.transport_timeout_s = self.read_timeout_s if transport_timeout_s is None else min(transport_timeout_s, self.read_timeout_s)


def format_command(*parts, args=None):
    """Join the parts of a shell command, inserting ``args`` after the first two parts.

    Parameters
    ----------
    parts : str
        The command, e.g. ``'pm', 'install', '"/data/local/tmp/app.apk"'``
    args : list[str], None
        Extra arguments, e.g. ``['-r']``

    Returns
    -------
    str
        The command

    """
    return ' '.join(list(parts[:2]) + list(args or []) + list(parts[2:]))


def get_session_id(success_message):
    """Get the install session ID from the output of ``pm install-create``.

    Parameters
    ----------
    success_message : str
        E.g., ``'created install session [1234567890]'``

    Returns
    -------
    str
        The text between ``[`` and ``]``

    Raises
    ------
    adb_client.exceptions.PackageInstallationException
        There is no non-empty, bracket-delimited session ID

    """
    start = success_message.find('[')
    end = success_message.find(']', start + 1)
    if start == -1 or end == -1 or end == start + 1:
        raise exceptions.PackageInstallationException("Unable to get the install session ID from '{}'".format(success_message))

    return success_message[start + 1:end]
