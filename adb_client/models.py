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

"""Data classes shared by the blocking and asyncio APIs.

.. rubric:: Contents

* :class:`DeviceData`

    * :meth:`DeviceData.from_adb_data`

* :class:`DeviceState`
* :class:`FileStatistics`
* :class:`FileStatisticsV2`
* :class:`InstallProgress`
* :class:`PackageInstallProgressState`
* :class:`SyncProgress`
* :class:`VersionInfo`

"""


from collections import namedtuple
from enum import Enum
import re
import stat


#: Matches one line of ``host:devices-l`` output
DEVICE_DATA_REGEX = re.compile(r'^(?P<serial>[a-zA-Z0-9_-]+(?:\s?[\.a-zA-Z0-9_-]+)?(?:\:\d{1,})?)\s+'
                               r'(?P<state>device|connecting|offline|unknown|bootloader|recovery|sideload|download|authorizing|unauthorized|host|no permissions)'
                               r'(?P<message>.*?)'
                               r'(?:\s+usb:(?P<usb>[^:]+))?'
                               r'(?:\s+product:(?P<product>[^:]+))?'
                               r'(?:\s+model\:(?P<model>[\S]+))?'
                               r'(?:\s+device\:(?P<device>[\S]+))?'
                               r'(?:\s+features:(?P<features>[^:]+))?'
                               r'(?:\s+transport_id:(?P<transport_id>[^:]+))?$', re.IGNORECASE)


class DeviceState(Enum):
    """The connection state of a device, as reported by the adb server.

    """
    ONLINE = 'device'
    OFFLINE = 'offline'
    CONNECTING = 'connecting'
    BOOTLOADER = 'bootloader'
    RECOVERY = 'recovery'
    SIDELOAD = 'sideload'
    DOWNLOAD = 'download'
    AUTHORIZING = 'authorizing'
    UNAUTHORIZED = 'unauthorized'
    HOST = 'host'
    NO_PERMISSIONS = 'no permissions'
    UNKNOWN = 'unknown'

    @classmethod
    def from_adb_state(cls, state):
        """Convert the state word used by the adb server to a :class:`DeviceState`.

        Unrecognized words map to :attr:`DeviceState.UNKNOWN`.

        """
        try:
            return cls(state.lower())
        except ValueError:
            return cls.UNKNOWN


class DeviceData(namedtuple('DeviceData', ['serial', 'state', 'model', 'product', 'name', 'features', 'usb', 'transport_id', 'message'])):
    """A device known to the adb server.

    """
    __slots__ = ()

    def __new__(cls, serial, state=DeviceState.ONLINE, model='', product='', name='', features=(), usb='', transport_id='', message=''):
        return super(DeviceData, cls).__new__(cls, serial, state, model, product, name, tuple(features), usb, transport_id, message)

    @classmethod
    def from_adb_data(cls, data):
        """Parse one line of ``host:devices-l`` output.

        Parameters
        ----------
        data : str
            A line such as ``'emulator-5554 device product:sdk model:Android_SDK device:generic transport_id:1'``

        Returns
        -------
        DeviceData
            The parsed device

        Raises
        ------
        ValueError
            ``data`` is not a device line

        """
        match = DEVICE_DATA_REGEX.match(data)
        if not match:
            raise ValueError("Invalid device list data '{}'".format(data))

        return cls(serial=match.group('serial'),
                   state=DeviceState.from_adb_state(match.group('state')),
                   model=match.group('model') or '',
                   product=match.group('product') or '',
                   name=match.group('device') or '',
                   features=[feature for feature in (match.group('features') or '').split(',') if feature],
                   usb=match.group('usb') or '',
                   transport_id=match.group('transport_id') or '',
                   message=(match.group('message') or '').lstrip())


class _FileTypeMixin(object):  # pylint: disable=too-few-public-methods
    """Helpers for the POSIX file type bits of ``mode``.

    """
    __slots__ = ()

    @property
    def is_directory(self):
        """Whether the entry is a directory."""
        return stat.S_ISDIR(self.mode)

    @property
    def is_regular_file(self):
        """Whether the entry is a regular file."""
        return stat.S_ISREG(self.mode)

    @property
    def is_symbolic_link(self):
        """Whether the entry is a symbolic link."""
        return stat.S_ISLNK(self.mode)


class FileStatistics(_FileTypeMixin, namedtuple('FileStatistics', ['path', 'mode', 'size', 'time'])):
    """Metadata for a file on the device, from a ``STAT`` or ``DENT`` record.

    Attributes
    ----------
    path : str
        The path that was queried, or the entry name when listing
    mode : int
        The POSIX mode (type and permission bits)
    size : int
        The size in bytes
    time : int
        The modification time, in seconds since the epoch

    """
    __slots__ = ()


class FileStatisticsV2(_FileTypeMixin, namedtuple('FileStatisticsV2', ['path', 'error', 'device', 'inode', 'mode', 'link_count', 'uid', 'gid', 'size', 'access_time', 'modified_time', 'changed_time'])):
    """Metadata for a file on the device, from a ``STA2``, ``LST2`` or ``DNT2`` record.

    """
    __slots__ = ()


class SyncProgress(namedtuple('SyncProgress', ['received_bytes', 'total_bytes'])):
    """The progress of a push or pull.

    """
    __slots__ = ()

    @property
    def progress_percentage(self):
        """The percentage of the transfer that is done, or 0 if the total size is unknown."""
        if not self.total_bytes:
            return 0.
        return self.received_bytes * 100. / self.total_bytes


class PackageInstallProgressState(Enum):
    """The phases of a package installation.

    """
    PREPARING = 'preparing'
    UPLOADING = 'uploading'
    CREATE_SESSION = 'create_session'
    WRITE_SESSION = 'write_session'
    INSTALLING = 'installing'
    POST_INSTALL = 'post_install'
    FINISHED = 'finished'


class InstallProgress(namedtuple('InstallProgress', ['state', 'package_finished', 'package_required', 'upload_progress'])):
    """A package installation progress event.

    Attributes
    ----------
    state : PackageInstallProgressState
        The current phase
    package_finished : int
        The number of files that have finished the current phase
    package_required : int
        The number of files in the current phase
    upload_progress : float
        The upload percentage, for :attr:`PackageInstallProgressState.UPLOADING`

    """
    __slots__ = ()

    def __new__(cls, state, package_finished=0, package_required=0, upload_progress=0.):
        return super(InstallProgress, cls).__new__(cls, state, package_finished, package_required, upload_progress)


VersionInfo = namedtuple('VersionInfo', ['version_code', 'version_name'])
