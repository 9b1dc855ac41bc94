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

"""ADB-related exceptions.

"""


class AdbException(Exception):
    """Base class for the exceptions raised by this package.

    """


class AdbCommandFailureException(AdbException):
    """A ``b'FAIL'`` response was received.

    """


class AdbConnectionError(AdbException):
    """ADB command not sent because a connection to the adb server has not been established.

    """


class AdbTimeoutError(AdbException):
    """ADB command did not complete within the specified time.

    """


class AdbFileNotFoundError(AdbException):
    """The device reported that a file does not exist.

    """


class DeviceNotFoundError(AdbException):
    """The adb server does not know the requested device.

    """


class DeviceOfflineError(AdbException):
    """The operation requires an online device.

    """


class DevicePathInvalidError(AdbException):
    """A file command was passed an invalid path.

    """


class InvalidCommandError(AdbException):
    """Got an unknown sync command.

    """


class InvalidResponseError(AdbException):
    """Got an invalid response to our command.

    """


class OperationCancelledError(AdbException):
    """The operation was cancelled before it completed.

    """


class PackageInstallationException(AdbException):
    """The package manager reported an error.

    """


class PackageInstallationCountError(PackageInstallationException):
    """Fewer files were processed than were requested.

    Parameters
    ----------
    expected : int
        The number of files that should have been processed
    actual : int
        The number of files that were processed

    """
    def __init__(self, expected, actual):
        super(PackageInstallationCountError, self).__init__(expected, actual)
        self.expected = expected
        self.actual = actual

    def __str__(self):
        return 'Expected {} files to be processed, but only {} were'.format(self.expected, self.actual)


class PullFailedError(AdbException):
    """Pulling a file failed.

    """


class PushFailedError(AdbException):
    """Pushing a file failed.

    """


class ShellCommandUnresponsiveError(AdbException):
    """The shell output stream broke before the command finished.

    """


class TcpTimeoutException(AdbTimeoutError):
    """TCP connection timed out in the time out given.

    """
