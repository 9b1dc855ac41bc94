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

"""Install, uninstall, and query packages on a device, using asyncio.

.. rubric:: Contents

* :class:`PackageManagerAsync`

    * :meth:`PackageManagerAsync._create_install_session`
    * :meth:`PackageManagerAsync._remove_remote_packages`
    * :meth:`PackageManagerAsync._sync_package_to_device`
    * :meth:`PackageManagerAsync._write_install_session`
    * :meth:`PackageManagerAsync.get_version_info`
    * :meth:`PackageManagerAsync.install_multiple_package`
    * :meth:`PackageManagerAsync.install_multiple_remote_package`
    * :meth:`PackageManagerAsync.install_package`
    * :meth:`PackageManagerAsync.install_remote_package`
    * :meth:`PackageManagerAsync.refresh_packages`
    * :meth:`PackageManagerAsync.uninstall_package`

"""


from asyncio import gather, get_running_loop
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


def _split_results(results):
    """Separate the return values of ``asyncio.gather(..., return_exceptions=True)`` from the exceptions.

    """
    values = [result for result in results if not isinstance(result, BaseException)]
    errors = [result for result in results if isinstance(result, BaseException)]
    return values, errors


class PackageManagerAsync(object):
    """Install, uninstall, and query packages on a device, using asyncio.

    Split APKs are pushed to the device and removed from it concurrently.

    Parameters
    ----------
    client : AdbClientAsync
        An object with a ``shell(device, command, receiver)`` coroutine method
    device : DeviceData
        The device
    progress_callback : function, None
        Called with an :class:`~adb_client.models.InstallProgress` whenever an installation makes progress
    sync_service_factory : function, None
        A function that takes ``client`` and ``device`` and returns a :class:`~adb_client.sync_service_async.SyncServiceAsync`;
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

    async def _run_install_command(self, command):
        receiver = InstallOutputReceiver()
        await self._client.shell(self._device, command, receiver)
        return receiver

    # ======================================================================= #
    #                                                                         #
    #                                 Packages                                #
    #                                                                         #
    # ======================================================================= #
    async def refresh_packages(self):
        """Refresh :attr:`packages` with the output of ``pm list packages -f``.

        Returns
        -------
        dict[str, str]
            The packages on the device

        """
        self._validate_device()

        receiver = PackageManagerReceiver()
        await self._client.shell(self._device, constants.LIST_THIRD_PARTY_ONLY if self.third_party_only else constants.LIST_FULL, receiver)
        self.packages = receiver.packages
        return self.packages

    async def get_version_info(self, package_name):
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
        await self._client.shell(self._device, 'dumpsys package {}'.format(package_name), receiver)
        return receiver.version_info

    async def uninstall_package(self, package_name, args=None):
        """Uninstall a package.

        Parameters
        ----------
        package_name : str
            The package name
        args : list[str], None
            Arguments for ``pm uninstall``, e.g. ``['-k']``

        """
        self._validate_device()

        receiver = await self._run_install_command(format_command('pm', 'uninstall', package_name, args=args))
        if receiver.error_message:
            raise exceptions.PackageInstallationException(receiver.error_message)

    # ======================================================================= #
    #                                                                         #
    #                              Legacy install                             #
    #                                                                         #
    # ======================================================================= #
    async def install_package(self, package_file_path, args=None):
        """Push an APK to the device, install it, and remove the pushed file.

        Parameters
        ----------
        package_file_path : str
            The local path of the APK
        args : list[str], None
            Arguments for ``pm install``, e.g. ``['-r']``

        """
        self._validate_device()
        self._notify(PackageInstallProgressState.PREPARING)

        aggregator = InstallProgressAggregator(self._progress_callback, 1)
        remote_file_path = await self._sync_package_to_device(package_file_path, aggregator)

        try:
            await self.install_remote_package(remote_file_path, args)
        finally:
            await self._remove_remote_packages([remote_file_path])

        self._notify(PackageInstallProgressState.FINISHED)

    async def install_remote_package(self, remote_file_path, args=None):
        """Install an APK that is already on the device.

        Parameters
        ----------
        remote_file_path : str
            The path of the APK on the device
        args : list[str], None
            Arguments for ``pm install``, e.g. ``['-r']``

        """
        self._notify(PackageInstallProgressState.INSTALLING)
        self._validate_device()

        receiver = await self._run_install_command(format_command('pm', 'install', '"{}"'.format(remote_file_path), args=args))
        if receiver.error_message:
            raise exceptions.PackageInstallationException(receiver.error_message)

    # ======================================================================= #
    #                                                                         #
    #                              Session install                            #
    #                                                                         #
    # ======================================================================= #
    async def install_multiple_package(self, base_package_file_path, split_package_file_paths, package_name=None, args=None):
        """Push a base APK and split APKs to the device and install them in one session.

        All of the files are pushed concurrently.  If any push fails, the files that were pushed are removed and a
        :class:`~adb_client.exceptions.PackageInstallationCountError` is raised.

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

        """
        if (base_package_file_path is None) == (package_name is None):
            raise ValueError('Exactly one of `base_package_file_path` and `package_name` must be provided')

        self._validate_device()
        self._notify(PackageInstallProgressState.PREPARING)

        local_paths = ([base_package_file_path] if base_package_file_path else []) + list(split_package_file_paths)
        aggregator = InstallProgressAggregator(self._progress_callback, len(local_paths), 0.5)

        remote_paths = []
        try:
            results = await gather(*[self._sync_package_to_device(local_path, aggregator) for local_path in local_paths], return_exceptions=True)
            remote_paths, errors = _split_results(results)
            if errors:
                raise exceptions.PackageInstallationCountError(len(local_paths), len(remote_paths)) from errors[0]

            if base_package_file_path:
                await self.install_multiple_remote_package(remote_paths[0], remote_paths[1:], args=args)
            else:
                await self.install_multiple_remote_package(None, remote_paths, package_name, args)
        finally:
            if remote_paths:
                await self._remove_remote_packages(remote_paths)

        self._notify(PackageInstallProgressState.FINISHED)

    async def install_multiple_remote_package(self, base_remote_file_path, split_remote_file_paths, package_name=None, args=None):
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

        """
        if (base_remote_file_path is None) == (package_name is None):
            raise ValueError('Exactly one of `base_remote_file_path` and `package_name` must be provided')

        self._notify(PackageInstallProgressState.CREATE_SESSION)
        self._validate_device()

        session = await self._create_install_session(package_name, args)

        required = len(split_remote_file_paths) + (1 if base_remote_file_path else 0)
        self._notify(PackageInstallProgressState.WRITE_SESSION, 0, required)

        # The writes share one session, so they are issued in order
        count = 0
        if base_remote_file_path:
            await self._write_install_session(session, 'base', base_remote_file_path)
            count += 1
            self._notify(PackageInstallProgressState.WRITE_SESSION, count, required)

        for i, split_remote_file_path in enumerate(split_remote_file_paths):
            await self._write_install_session(session, 'split{}'.format(i), split_remote_file_path)
            count += 1
            self._notify(PackageInstallProgressState.WRITE_SESSION, count, required)

        self._notify(PackageInstallProgressState.INSTALLING)

        receiver = await self._run_install_command('pm install-commit {}'.format(session))
        if receiver.error_message:
            raise exceptions.PackageInstallationException(receiver.error_message)

    # ======================================================================= #
    #                                                                         #
    #                              Hidden Methods                             #
    #                                                                         #
    # ======================================================================= #
    async def _sync_package_to_device(self, local_file_path, aggregator):
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
            mtime = int(await get_running_loop().run_in_executor(None, os.path.getmtime, local_file_path))
            sync_service = self._sync_service_factory(self._client, self._device)
            await sync_service.push(local_file_path, remote_file_path, constants.DEFAULT_PUSH_MODE, mtime, progress_callback=aggregator.callback_for(local_file_path))
        except OSError:
            _LOGGER.error("Unable to upload '%s' onto device '%s'", local_file_path, self._device.serial)
            raise

        aggregator.finish(local_file_path)

        return remote_file_path

    async def _remove_remote_packages(self, remote_file_paths):
        """Delete pushed files from the device concurrently, reporting the progress as :attr:`PackageInstallProgressState.POST_INSTALL`.

        Raises
        ------
        adb_client.exceptions.PackageInstallationCountError
            Not all of the files were deleted

        """
        required = len(remote_file_paths)
        self._notify(PackageInstallProgressState.POST_INSTALL, 0, required)

        removed = []

        async def remove(remote_file_path):
            await self._client.shell(self._device, 'rm "{}"'.format(remote_file_path))
            removed.append(remote_file_path)
            self._notify(PackageInstallProgressState.POST_INSTALL, len(removed), required)

        results = await gather(*[remove(remote_file_path) for remote_file_path in remote_file_paths], return_exceptions=True)
        _, errors = _split_results(results)
        if errors:
            for error in errors:
                _LOGGER.error("Failed to delete a temporary package: %s", error)
            raise exceptions.PackageInstallationCountError(required, len(removed)) from errors[0]

    async def _create_install_session(self, package_name=None, args=None):
        """Run ``pm install-create`` and return the session ID.

        """
        self._validate_device()

        package_args = ['-p', package_name] if package_name else []
        receiver = await self._run_install_command(format_command('pm', 'install-create', args=package_args + list(args or [])))
        if not receiver.success_message:
            raise exceptions.PackageInstallationException(receiver.error_message or UNKNOWN_ERROR)

        return get_session_id(receiver.success_message)

    async def _write_install_session(self, session, apk_name, path):
        """Run ``pm install-write`` for one file.

        """
        self._validate_device()

        receiver = await self._run_install_command('pm install-write {} {}.apk "{}"'.format(session, apk_name, path))
        if receiver.error_message:
            raise exceptions.PackageInstallationException(receiver.error_message)
