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

"""Install, uninstall, and query packages on a device.

.. rubric:: Contents

* :class:`PackageManager`

    * :meth:`PackageManager._create_install_session`
    * :meth:`PackageManager._remove_remote_packages`
    * :meth:`PackageManager._sync_package_to_device`
    * :meth:`PackageManager._write_install_session`
    * :meth:`PackageManager.get_version_info`
    * :meth:`PackageManager.install_multiple_package`
    * :meth:`PackageManager.install_multiple_remote_package`
    * :meth:`PackageManager.install_package`
    * :meth:`PackageManager.install_remote_package`
    * :meth:`PackageManager.refresh_packages`
    * :meth:`PackageManager.uninstall_package`

"""


import logging
import os

from . import constants
from . import exceptions
from .hidden_helpers import format_command, get_remote_temp_path, get_session_id
from .models import DeviceState, InstallProgress, PackageInstallProgressState
from .progress import InstallProgressAggregator, notify
from .receivers import UNKNOWN_ERROR, InstallOutputReceiver, PackageManagerReceiver, VersionInfoReceiver


_LOGGER = logging.getLogger(__name__)


def _default_sync_service_factory(client, device):
    return client.sync_service(device)


class PackageManager(object):
    """Install, uninstall, and query packages on a device.

    Parameters
    ----------
    client : AdbClient
        An object with a ``shell(device, command, receiver)`` method
    device : DeviceData
        The device
    progress_callback : function, None
        Called with an :class:`~adb_client.models.InstallProgress` whenever an installation makes progress
    sync_service_factory : function, None
        A function that takes ``client`` and ``device`` and returns a :class:`~adb_client.sync_service.SyncService`;
        by default, ``client.sync_service(device)`` is used
    third_party_only : bool
        Whether :meth:`refresh_packages` lists only third party packages

    Attributes
    ----------
    packages : dict[str, str]
        The packages found by :meth:`refresh_packages`; keys are package names and values are APK paths

    """
    def __init__(self, client, device, progress_callback=None, sync_service_factory=None, third_party_only=False):
        self._client = client
        self._device = device
        self._progress_callback = progress_callback
        self._sync_service_factory = sync_service_factory or _default_sync_service_factory
        self.third_party_only = third_party_only
        self.packages = {}

    @property
    def device(self):
        """The device that this package manager operates on."""
        return self._device

    def _validate_device(self):
        if self._device.state is not DeviceState.ONLINE:
            raise exceptions.DeviceOfflineError('Device is offline')

    def _notify(self, state, package_finished=0, package_required=0):
        notify(self._progress_callback, InstallProgress(state, package_finished, package_required))

    def _run_install_command(self, command):
        receiver = InstallOutputReceiver()
        self._client.shell(self._device, command, receiver)
        return receiver

    # ======================================================================= #
    #                                                                         #
    #                                 Packages                                #
    #                                                                         #
    # ======================================================================= #
    def refresh_packages(self):
        """Refresh :attr:`packages` with the output of ``pm list packages -f``.

        Returns
        -------
        dict[str, str]
            The packages on the device

        """
        self._validate_device()

        receiver = PackageManagerReceiver()
        self._client.shell(self._device, constants.LIST_THIRD_PARTY_ONLY if self.third_party_only else constants.LIST_FULL, receiver)
        self.packages = receiver.packages
        return self.packages

    def get_version_info(self, package_name):
        """Get the version of an installed package.

        Parameters
        ----------
        package_name : str
            The package name

        Returns
        -------
        VersionInfo, None
            The version code and name, or ``None`` if the package is not installed

        """
        self._validate_device()

        receiver = VersionInfoReceiver()
        self._client.shell(self._device, 'dumpsys package {}'.format(package_name), receiver)
        return receiver.version_info

    def uninstall_package(self, package_name, args=None):
        """Uninstall a package.

        Parameters
        ----------
        package_name : str
            The package name
        args : list[str], None
            Arguments for ``pm uninstall``, e.g. ``['-k']``

        Raises
        ------
        adb_client.exceptions.PackageInstallationException
            ``pm uninstall`` reported an error

        """
        self._validate_device()

        receiver = self._run_install_command(format_command('pm', 'uninstall', package_name, args=args))
        if receiver.error_message:
            raise exceptions.PackageInstallationException(receiver.error_message)

    # ======================================================================= #
    #                                                                         #
    #                              Legacy install                             #
    #                                                                         #
    # ======================================================================= #
    def install_package(self, package_file_path, args=None):
        """Push an APK to the device, install it, and remove the pushed file.

        Parameters
        ----------
        package_file_path : str
            The local path of the APK
        args : list[str], None
            Arguments for ``pm install``, e.g. ``['-r']``

        Raises
        ------
        adb_client.exceptions.PackageInstallationException
            ``pm install`` reported an error

        """
        self._validate_device()
        self._notify(PackageInstallProgressState.PREPARING)

        aggregator = InstallProgressAggregator(self._progress_callback, 1)
        remote_file_path = self._sync_package_to_device(package_file_path, aggregator)

        try:
            self.install_remote_package(remote_file_path, args)
        finally:
            self._remove_remote_packages([remote_file_path])

        self._notify(PackageInstallProgressState.FINISHED)

    def install_remote_package(self, remote_file_path, args=None):
        """Install an APK that is already on the device.

        Parameters
        ----------
        remote_file_path : str
            The path of the APK on the device
        args : list[str], None
            Arguments for ``pm install``, e.g. ``['-r']``

        Raises
        ------
        adb_client.exceptions.PackageInstallationException
            ``pm install`` reported an error

        """
        self._notify(PackageInstallProgressState.INSTALLING)
        self._validate_device()

        receiver = self._run_install_command(format_command('pm', 'install', '"{}"'.format(remote_file_path), args=args))
        if receiver.error_message:
            raise exceptions.PackageInstallationException(receiver.error_message)

    # ======================================================================= #
    #                                                                         #
    #                              Session install                            #
    #                                                                         #
    # ======================================================================= #
    def install_multiple_package(self, base_package_file_path, split_package_file_paths, package_name=None, args=None):
        """Push a base APK and split APKs to the device and install them in one session.

        To add splits to an installed package, pass ``None`` for ``base_package_file_path`` and provide ``package_name``.

        Parameters
        ----------
        base_package_file_path : str, None
            The local path of the base APK
        split_package_file_paths : list[str]
            The local paths of the split APKs
        package_name : str, None
            The name of the installed package that the splits belong to
        args : list[str], None
            Arguments for ``pm install-create``, e.g. ``['-r']``

        Raises
        ------
        adb_client.exceptions.PackageInstallationCountError
            Not all of the files were pushed to the device
        adb_client.exceptions.PackageInstallationException
            A ``pm`` command reported an error

        """
        if (base_package_file_path is None) == (package_name is None):
            raise ValueError('Exactly one of `base_package_file_path` and `package_name` must be provided')

        self._validate_device()
        self._notify(PackageInstallProgressState.PREPARING)

        local_paths = ([base_package_file_path] if base_package_file_path else []) + list(split_package_file_paths)
        aggregator = InstallProgressAggregator(self._progress_callback, len(local_paths), 0.5)

        remote_paths = []
        try:
            for local_path in local_paths:
                try:
                    remote_paths.append(self._sync_package_to_device(local_path, aggregator))
                except Exception as exc:
                    raise exceptions.PackageInstallationCountError(len(local_paths), len(remote_paths)) from exc

            if base_package_file_path:
                self.install_multiple_remote_package(remote_paths[0], remote_paths[1:], args=args)
            else:
                self.install_multiple_remote_package(None, remote_paths, package_name, args)
        finally:
            if remote_paths:
                self._remove_remote_packages(remote_paths)

        self._notify(PackageInstallProgressState.FINISHED)

    def install_multiple_remote_package(self, base_remote_file_path, split_remote_file_paths, package_name=None, args=None):
        """Install a base APK and split APKs that are already on the device in one session.

        Parameters
        ----------
        base_remote_file_path : str, None
            The path of the base APK on the device
        split_remote_file_paths : list[str]
            The paths of the split APKs on the device
        package_name : str, None
            The name of the installed package that the splits belong to
        args : list[str], None
            Arguments for ``pm install-create``, e.g. ``['-r']``

        Raises
        ------
        adb_client.exceptions.PackageInstallationException
            A ``pm`` command reported an error

        """
        if (base_remote_file_path is None) == (package_name is None):
            raise ValueError('Exactly one of `base_remote_file_path` and `package_name` must be provided')

        self._notify(PackageInstallProgressState.CREATE_SESSION)
        self._validate_device()

        session = self._create_install_session(package_name, args)

        required = len(split_remote_file_paths) + (1 if base_remote_file_path else 0)
        self._notify(PackageInstallProgressState.WRITE_SESSION, 0, required)

        count = 0
        if base_remote_file_path:
            self._write_install_session(session, 'base', base_remote_file_path)
            count += 1
            self._notify(PackageInstallProgressState.WRITE_SESSION, count, required)

        for i, split_remote_file_path in enumerate(split_remote_file_paths):
            self._write_install_session(session, 'split{}'.format(i), split_remote_file_path)
            count += 1
            self._notify(PackageInstallProgressState.WRITE_SESSION, count, required)

        self._notify(PackageInstallProgressState.INSTALLING)

        receiver = self._run_install_command('pm install-commit {}'.format(session))
        if receiver.error_message:
            raise exceptions.PackageInstallationException(receiver.error_message)

    # ======================================================================= #
    #                                                                         #
    #                              Hidden Methods                             #
    #                                                                         #
    # ======================================================================= #
    def _sync_package_to_device(self, local_file_path, aggregator):
        """Push a file to the temporary installation directory on the device.

        Parameters
        ----------
        local_file_path : str
            The local path of the file
        aggregator : InstallProgressAggregator
            Receives the upload progress of the file, and is told when the upload has finished

        Returns
        -------
        str
            The path of the file on the device

        """
        self._validate_device()

        remote_file_path = get_remote_temp_path(local_file_path)
        _LOGGER.debug("Uploading '%s' onto device '%s'", local_file_path, self._device.serial)

        try:
            mtime = int(os.path.getmtime(local_file_path))
            sync_service = self._sync_service_factory(self._client, self._device)
            sync_service.push(local_file_path, remote_file_path, constants.DEFAULT_PUSH_MODE, mtime, progress_callback=aggregator.callback_for(local_file_path))
        except OSError:
            _LOGGER.error("Unable to upload '%s' onto device '%s'", local_file_path, self._device.serial)
            raise

        aggregator.finish(local_file_path)

        return remote_file_path

    def _remove_remote_packages(self, remote_file_paths):
        """Delete pushed files from the device, reporting the progress as :attr:`PackageInstallProgressState.POST_INSTALL`.

        Every file is attempted, even if deleting an earlier one failed.

        Raises
        ------
        adb_client.exceptions.PackageInstallationCountError
            Not all of the files were deleted

        """
        required = len(remote_file_paths)
        self._notify(PackageInstallProgressState.POST_INSTALL, 0, required)

        removed = 0
        errors = []
        for remote_file_path in remote_file_paths:
            try:
                self._client.shell(self._device, 'rm "{}"'.format(remote_file_path))
            except Exception as exc:  # pylint: disable=broad-except
                _LOGGER.error("Failed to delete temporary package '%s': %s", remote_file_path, exc)
                errors.append(exc)
                continue

            removed += 1
            self._notify(PackageInstallProgressState.POST_INSTALL, removed, required)

        if errors:
            raise exceptions.PackageInstallationCountError(required, removed) from errors[0]

    def _create_install_session(self, package_name=None, args=None):
        """Run ``pm install-create`` and return the session ID.

        """
        self._validate_device()

        package_args = ['-p', package_name] if package_name else []
        receiver = self._run_install_command(format_command('pm', 'install-create', args=package_args + list(args or [])))
        if not receiver.success_message:
            raise exceptions.PackageInstallationException(receiver.error_message or UNKNOWN_ERROR)

        return get_session_id(receiver.success_message)

    def _write_install_session(self, session, apk_name, path):
        """Run ``pm install-write`` for one file.

        """
        self._validate_device()

        receiver = self._run_install_command('pm install-write {} {}.apk "{}"'.format(session, apk_name, path))
        if receiver.error_message:
            raise exceptions.PackageInstallationException(receiver.error_message)
