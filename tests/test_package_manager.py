import logging
import unittest
from unittest.mock import patch

from adb_client import exceptions
from adb_client.models import InstallProgress, PackageInstallProgressState, SyncProgress, VersionInfo
from adb_client.package_manager import PackageManager

from . import patchers


State = PackageInstallProgressState


class FakeClient(object):
    """Reply to shell commands with canned output, keyed by command prefix."""
    def __init__(self, outputs=None):
        self.outputs = dict(outputs or {})
        self.commands = []

    def shell(self, device, command, receiver=None, decode=True):
        self.commands.append(command)

        output = ''
        for prefix, value in self.outputs.items():
            if command.startswith(prefix):
                if isinstance(value, Exception):
                    raise value
                output = value
                break

        if receiver is not None:
            for line in output.splitlines():
                receiver.add_output(line)
            receiver.flush()

        return output


class FakeSyncService(object):
    def __init__(self, failures=()):
        self.failures = failures
        self.pushed = []

    def push(self, local_path, device_path, st_mode, mtime, progress_callback=None, cancel_event=None, use_v2=False):
        if local_path in self.failures:
            raise exceptions.PushFailedError('No space left on device')

        progress_callback(SyncProgress(50, 100))
        progress_callback(SyncProgress(100, 100))
        self.pushed.append((local_path, device_path, st_mode, mtime))


INSTALL_OUTPUTS = {'pm install-create': 'Success: created install session [1234567890]\n',
                   'pm install-write': 'Success: streamed 1024 bytes\n',
                   'pm install-commit': 'Success\n',
                   'pm install ': 'Success\n',
                   'rm ': ''}


class TestPackageManagerBase(unittest.TestCase):
    def setUp(self):
        self.client = FakeClient(INSTALL_OUTPUTS)
        self.sync_service = FakeSyncService()
        self.progress = []
        self.package_manager = self.create_package_manager()

        self.getmtime_patcher = patch('os.path.getmtime', return_value=1600000000.5)
        self.getmtime_patcher.start()

    def tearDown(self):
        self.getmtime_patcher.stop()

    def create_package_manager(self, device=patchers.DEVICE, **kwargs):
        return PackageManager(self.client, device, self.progress.append, lambda client, device: self.sync_service, **kwargs)

    @property
    def states(self):
        return [progress.state for progress in self.progress]


class TestPackageManagerQueries(TestPackageManagerBase):
    def test_refresh_packages(self):
        self.client.outputs = {'pm list packages': 'package:/data/app/com.example.app-1/base.apk=com.example.app\npackage:/system/app/Camera.apk=com.android.camera\n'}

        packages = self.package_manager.refresh_packages()
        self.assertEqual(packages, {'com.example.app': '/data/app/com.example.app-1/base.apk', 'com.android.camera': '/system/app/Camera.apk'})
        self.assertIs(self.package_manager.packages, packages)
        self.assertEqual(self.client.commands, ['pm list packages -f'])

    def test_refresh_packages_third_party_only(self):
        self.create_package_manager(third_party_only=True).refresh_packages()
        self.assertEqual(self.client.commands, ['pm list packages -f -3'])

    def test_get_version_info(self):
        self.client.outputs = {'dumpsys package': 'Packages:\n  Package [com.example.app] (3b0d5f6):\n    versionCode=42 minSdk=21 targetSdk=30\n    versionName=1.2.3\n'}

        self.assertEqual(self.package_manager.get_version_info('com.example.app'), VersionInfo(42, '1.2.3'))
        self.assertEqual(self.client.commands, ['dumpsys package com.example.app'])

    def test_uninstall_package(self):
        self.client.outputs = {'pm uninstall': 'Success\n'}
        self.package_manager.uninstall_package('com.example.app', ['-k'])
        self.assertEqual(self.client.commands, ['pm uninstall -k com.example.app'])

    def test_uninstall_package_failure(self):
        self.client.outputs = {'pm uninstall': 'Failure [DELETE_FAILED_INTERNAL_ERROR]\n'}

        with self.assertRaises(exceptions.PackageInstallationException) as cm:
            self.package_manager.uninstall_package('com.example.missing')
        self.assertEqual(str(cm.exception), 'DELETE_FAILED_INTERNAL_ERROR')

    def test_offline(self):
        package_manager = self.create_package_manager(patchers.OFFLINE_DEVICE)

        with self.assertRaises(exceptions.DeviceOfflineError):
            package_manager.refresh_packages()

        with self.assertRaises(exceptions.DeviceOfflineError):
            package_manager.install_package('app.apk')

        with self.assertRaises(exceptions.DeviceOfflineError):
            package_manager.install_multiple_package('base.apk', ['split.apk'])

        self.assertEqual(self.client.commands, [])
        self.assertEqual(self.sync_service.pushed, [])


class TestPackageManagerInstall(TestPackageManagerBase):
    def test_install_package(self):
        self.package_manager.install_package('/home/user/app.apk', ['-r'])

        self.assertEqual(self.sync_service.pushed, [('/home/user/app.apk', '/data/local/tmp/app.apk', 0o666, 1600000000)])
        self.assertEqual(self.client.commands, ['pm install -r "/data/local/tmp/app.apk"', 'rm "/data/local/tmp/app.apk"'])
        self.assertEqual(self.progress, [InstallProgress(State.PREPARING),
                                         InstallProgress(State.UPLOADING, 0, 1, 50.),
                                         InstallProgress(State.UPLOADING, 1, 1, 100.),
                                         InstallProgress(State.INSTALLING),
                                         InstallProgress(State.POST_INSTALL, 0, 1),
                                         InstallProgress(State.POST_INSTALL, 1, 1),
                                         InstallProgress(State.FINISHED)])

    def test_install_package_failure_still_cleans_up(self):
        self.client.outputs['pm install '] = 'Failure [INSTALL_FAILED_OLDER_SDK]\n'

        with self.assertRaises(exceptions.PackageInstallationException) as cm:
            self.package_manager.install_package('app.apk')

        self.assertEqual(str(cm.exception), 'INSTALL_FAILED_OLDER_SDK')
        self.assertEqual(self.client.commands[-1], 'rm "/data/local/tmp/app.apk"')
        self.assertNotIn(State.FINISHED, self.states)

    def test_install_package_cleanup_failure(self):
        self.client.outputs['rm '] = exceptions.AdbConnectionError('connection reset')

        with self.assertLogs('adb_client.package_manager', logging.ERROR):
            with self.assertRaises(exceptions.PackageInstallationCountError) as cm:
                self.package_manager.install_package('app.apk')

        self.assertEqual((cm.exception.expected, cm.exception.actual), (1, 0))
        self.assertIsInstance(cm.exception.__cause__, exceptions.AdbConnectionError)
        self.assertNotIn(State.FINISHED, self.states)

    def test_install_package_push_failure(self):
        self.sync_service.failures = ('app.apk',)

        with self.assertRaises(exceptions.PushFailedError):
            self.package_manager.install_package('app.apk')

        # Nothing was pushed, so nothing is installed or removed
        self.assertEqual(self.client.commands, [])

    def test_install_multiple_package(self):
        self.package_manager.install_multiple_package('/apks/base.apk', ['/apks/config.en.apk', '/apks/config.xxhdpi.apk'], args=['-r'])

        self.assertEqual([pushed[1] for pushed in self.sync_service.pushed], ['/data/local/tmp/base.apk', '/data/local/tmp/config.en.apk', '/data/local/tmp/config.xxhdpi.apk'])
        self.assertEqual(self.client.commands, ['pm install-create -r',
                                                'pm install-write 1234567890 base.apk "/data/local/tmp/base.apk"',
                                                'pm install-write 1234567890 split0.apk "/data/local/tmp/config.en.apk"',
                                                'pm install-write 1234567890 split1.apk "/data/local/tmp/config.xxhdpi.apk"',
                                                'pm install-commit 1234567890',
                                                'rm "/data/local/tmp/base.apk"',
                                                'rm "/data/local/tmp/config.en.apk"',
                                                'rm "/data/local/tmp/config.xxhdpi.apk"'])

        uploads = [progress.upload_progress for progress in self.progress if progress.state is State.UPLOADING]
        self.assertEqual(uploads, sorted(uploads))
        self.assertEqual(uploads[-1], 50.)

        uploaded = [(progress.package_finished, progress.package_required) for progress in self.progress if progress.state is State.UPLOADING]
        self.assertEqual(uploaded, [(0, 3), (1, 3), (1, 3), (2, 3), (2, 3), (3, 3)])

        writes = [(progress.package_finished, progress.package_required) for progress in self.progress if progress.state is State.WRITE_SESSION]
        self.assertEqual(writes, [(0, 3), (1, 3), (2, 3), (3, 3)])

        cleanups = [(progress.package_finished, progress.package_required) for progress in self.progress if progress.state is State.POST_INSTALL]
        self.assertEqual(cleanups, [(0, 3), (1, 3), (2, 3), (3, 3)])

        self.assertEqual([state for state in self.states if state is not State.UPLOADING and state is not State.WRITE_SESSION and state is not State.POST_INSTALL],
                         [State.PREPARING, State.CREATE_SESSION, State.INSTALLING, State.FINISHED])

    def test_install_multiple_package_existing(self):
        self.package_manager.install_multiple_package(None, ['/apks/config.de.apk'], package_name='com.example.app')

        self.assertEqual(self.client.commands[:3], ['pm install-create -p com.example.app',
                                                    'pm install-write 1234567890 split0.apk "/data/local/tmp/config.de.apk"',
                                                    'pm install-commit 1234567890'])

    def test_install_multiple_package_arguments(self):
        with self.assertRaises(ValueError):
            self.package_manager.install_multiple_package('base.apk', ['split.apk'], package_name='com.example.app')

        with self.assertRaises(ValueError):
            self.package_manager.install_multiple_package(None, ['split.apk'])

        self.assertEqual(self.progress, [])

    def test_install_multiple_package_push_failure(self):
        self.sync_service.failures = ('/apks/config.xxhdpi.apk',)

        with self.assertRaises(exceptions.PackageInstallationCountError) as cm:
            self.package_manager.install_multiple_package('/apks/base.apk', ['/apks/config.en.apk', '/apks/config.xxhdpi.apk'])

        self.assertEqual((cm.exception.expected, cm.exception.actual), (3, 2))
        self.assertIsInstance(cm.exception.__cause__, exceptions.PushFailedError)

        # The files that were pushed are removed, and no session is created
        self.assertEqual(self.client.commands, ['rm "/data/local/tmp/base.apk"', 'rm "/data/local/tmp/config.en.apk"'])

    def test_install_multiple_package_cleanup_failure(self):
        # The specific prefix must come before the generic `rm ` prefix
        self.client.outputs = {'rm "/data/local/tmp/base.apk"': exceptions.AdbConnectionError('connection reset')}
        self.client.outputs.update(INSTALL_OUTPUTS)

        with self.assertLogs('adb_client.package_manager', logging.ERROR):
            with self.assertRaises(exceptions.PackageInstallationCountError) as cm:
                self.package_manager.install_multiple_package('/apks/base.apk', ['/apks/config.en.apk', '/apks/config.xxhdpi.apk'])

        self.assertEqual((cm.exception.expected, cm.exception.actual), (3, 2))
        self.assertIsInstance(cm.exception.__cause__, exceptions.AdbConnectionError)

        # The files after the one that could not be deleted are still removed
        self.assertEqual([command for command in self.client.commands if command.startswith('rm ')], ['rm "/data/local/tmp/base.apk"',
                                                                                                      'rm "/data/local/tmp/config.en.apk"',
                                                                                                      'rm "/data/local/tmp/config.xxhdpi.apk"'])

        cleanups = [(progress.package_finished, progress.package_required) for progress in self.progress if progress.state is State.POST_INSTALL]
        self.assertEqual(cleanups, [(0, 3), (1, 3), (2, 3)])

    def test_install_multiple_package_commit_failure(self):
        self.client.outputs['pm install-commit'] = 'Failure [INSTALL_FAILED_INVALID_APK: Split config.en was defined multiple times]\n'

        with self.assertRaises(exceptions.PackageInstallationException) as cm:
            self.package_manager.install_multiple_package('/apks/base.apk', ['/apks/config.en.apk'])

        self.assertEqual(str(cm.exception), 'INSTALL_FAILED_INVALID_APK: Split config.en was defined multiple times')
        self.assertEqual([command for command in self.client.commands if command.startswith('rm ')], ['rm "/data/local/tmp/base.apk"', 'rm "/data/local/tmp/config.en.apk"'])

    def test_install_multiple_package_write_failure(self):
        self.client.outputs['pm install-write'] = 'Error: Unable to open file: /data/local/tmp/base.apk\n'

        with self.assertRaises(exceptions.PackageInstallationException):
            self.package_manager.install_multiple_package('/apks/base.apk', ['/apks/config.en.apk'])

        # The sequence stops at the first failed write
        self.assertEqual(len([command for command in self.client.commands if command.startswith('pm install-write')]), 1)
        self.assertNotIn('pm install-commit 1234567890', self.client.commands)

    def test_create_session_failure(self):
        self.client.outputs['pm install-create'] = 'Error: java.lang.IllegalArgumentException: Unknown package: com.example.missing\n'

        with self.assertRaises(exceptions.PackageInstallationException):
            self.package_manager.install_multiple_remote_package(None, ['/data/local/tmp/split.apk'], 'com.example.missing')

    def test_create_session_without_id(self):
        self.client.outputs['pm install-create'] = 'Success: created install session\n'

        with self.assertRaises(exceptions.PackageInstallationException):
            self.package_manager.install_multiple_remote_package('/data/local/tmp/base.apk', [])

    def test_install_multiple_remote_package(self):
        self.package_manager.install_multiple_remote_package('/data/local/tmp/base.apk', ['/data/local/tmp/split.apk'], args=['-g'])

        self.assertEqual(self.client.commands, ['pm install-create -g',
                                                'pm install-write 1234567890 base.apk "/data/local/tmp/base.apk"',
                                                'pm install-write 1234567890 split0.apk "/data/local/tmp/split.apk"',
                                                'pm install-commit 1234567890'])
        self.assertEqual(self.states, [State.CREATE_SESSION, State.WRITE_SESSION, State.WRITE_SESSION, State.WRITE_SESSION, State.INSTALLING])

    def test_progress_callback_exception(self):
        def progress_callback(progress):
            raise RuntimeError(progress)

        package_manager = PackageManager(self.client, patchers.DEVICE, progress_callback, lambda client, device: self.sync_service)
        with self.assertLogs('adb_client.progress', logging.WARNING):
            package_manager.install_package('app.apk')

        self.assertEqual(self.client.commands, ['pm install "/data/local/tmp/app.apk"', 'rm "/data/local/tmp/app.apk"'])

    def test_default_sync_service_factory(self):
        client = FakeClient(INSTALL_OUTPUTS)
        client.sync_service = lambda device: self.sync_service

        PackageManager(client, patchers.DEVICE).install_package('app.apk')
        self.assertEqual(len(self.sync_service.pushed), 1)
