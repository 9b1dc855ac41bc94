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

"""Parsers for the text output of shell commands.

A receiver is handed the output of a shell command one line at a time via :meth:`MultiLineReceiver.add_output`,
and it parses the collected lines when :meth:`MultiLineReceiver.flush` is called.

.. rubric:: Contents

* :class:`InstallOutputReceiver`
* :class:`MultiLineReceiver`

    * :meth:`MultiLineReceiver.add_output`
    * :meth:`MultiLineReceiver.flush`
    * :meth:`MultiLineReceiver.process_new_lines`

* :class:`PackageManagerReceiver`
* :class:`VersionInfoReceiver`

"""


import re

from .models import VersionInfo


#: The error message used when ``pm`` fails without saying why
UNKNOWN_ERROR = 'An unknown error occurred.'

SUCCESS_REGEX = re.compile(r'Success:\s+(.*)?', re.IGNORECASE)
FAILURE_REGEX = re.compile(r'Failure(?:\s+\[(.*)\])?', re.IGNORECASE)
ERROR_REGEX = re.compile(r'Error:\s+(.*)?', re.IGNORECASE)

#: ``versionCode=4 minSdk=9 targetSdk=22``
VERSION_CODE_REGEX = re.compile(r'versionCode=(\d*)( minSdk=(\d*))?( targetSdk=(\d*))?$')


class MultiLineReceiver(object):
    """Collect shell output lines and parse them all at once.

    """
    def __init__(self):
        self.lines = []

    def add_output(self, line):
        """Store one line of output."""
        self.lines.append(line)

    def flush(self):
        """Parse the stored lines, then discard them.

        """
        if self.lines:
            self.process_new_lines(self.lines)
            self.lines = []

    def process_new_lines(self, lines):
        """Parse a batch of lines; subclasses must override this.

        Parameters
        ----------
        lines : list[str]
            The lines of output

        """
        raise NotImplementedError


class InstallOutputReceiver(MultiLineReceiver):
    """Parse the output of the ``pm install*`` and ``pm uninstall`` commands.

    The last non-empty line decides the outcome: a ``Success`` line sets :attr:`success_message`, and any other line
    sets :attr:`error_message`.

    Attributes
    ----------
    error_message : str, None
        The reason for the failure, or ``None``
    success : bool
        Whether the command succeeded
    success_message : str, None
        The text after ``Success:``, or ``None``

    """
    def __init__(self):
        super(InstallOutputReceiver, self).__init__()
        self.error_message = None
        self.success = False
        self.success_message = None

    def process_new_lines(self, lines):
        for line in lines:
            if not line:
                continue

            if line.startswith('Success'):
                match = SUCCESS_REGEX.match(line)
                self.success_message = (match.group(1) or '') if match else ''
                self.error_message = None
                self.success = True
                continue

            regex = FAILURE_REGEX if line.startswith('Failure') else ERROR_REGEX
            match = regex.match(line)
            message = match.group(1) if match else None
            self.error_message = message if message and message.strip() else UNKNOWN_ERROR
            self.success_message = None
            self.success = False


class PackageManagerReceiver(MultiLineReceiver):
    """Parse the output of ``pm list packages -f``.

    Attributes
    ----------
    packages : dict[str, str]
        A dictionary whose keys are package names and whose values are APK paths (or ``None``)

    """
    def __init__(self):
        super(PackageManagerReceiver, self).__init__()
        self.packages = {}

    def process_new_lines(self, lines):
        self.packages.clear()

        for line in lines:
            if not line.startswith('package:'):
                continue

            # package:/system/app/LegacyCamera.apk=com.android.camera
            package = line[len('package:'):]
            path, separator, name = package.rpartition('=')
            if separator:
                self.packages[name] = path
            else:
                self.packages[package] = None


class VersionInfoReceiver(MultiLineReceiver):
    """Parse the ``Packages:`` section of ``dumpsys package <name>``.

    """
    def __init__(self):
        super(VersionInfoReceiver, self).__init__()
        self._in_packages_section = False
        self.version_code = None
        self.version_name = None

    @property
    def version_info(self):
        """The parsed :class:`~adb_client.models.VersionInfo`, or ``None`` if no version name was found."""
        if self.version_name is None:
            return None
        return VersionInfo(self.version_code or 0, self.version_name)

    def _check_packages_section(self, line):
        # Sections start with an unindented "Header:" line
        if not line.strip() or line[0].isspace():
            return
        self._in_packages_section = line.strip().lower() == 'packages:'

    def process_new_lines(self, lines):
        for line in lines:
            self._check_packages_section(line)
            if not self._in_packages_section:
                continue

            stripped = line.strip()
            if stripped.startswith('versionName='):
                self.version_name = stripped[len('versionName='):].strip()
                continue

            match = VERSION_CODE_REGEX.search(line)
            if match and match.group(1):
                self.version_code = int(match.group(1))
