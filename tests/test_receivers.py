import unittest

from adb_client.models import VersionInfo
from adb_client.receivers import UNKNOWN_ERROR, InstallOutputReceiver, MultiLineReceiver, PackageManagerReceiver, VersionInfoReceiver


def feed(receiver, output):
    for line in output.splitlines():
        receiver.add_output(line)
    receiver.flush()
    return receiver


class TestMultiLineReceiver(unittest.TestCase):
    def test_process_new_lines_not_implemented(self):
        receiver = MultiLineReceiver()
        receiver.add_output('line')
        with self.assertRaises(NotImplementedError):
            receiver.flush()

    def test_lines_are_kept_as_is(self):
        receiver = MultiLineReceiver()
        receiver.add_output('  line  ')
        self.assertEqual(receiver.lines, ['  line  '])


class TestInstallOutputReceiver(unittest.TestCase):
    def test_success(self):
        receiver = feed(InstallOutputReceiver(), 'Success\n')
        self.assertTrue(receiver.success)
        self.assertIsNone(receiver.error_message)
        self.assertEqual(receiver.success_message, '')

    def test_success_message(self):
        receiver = feed(InstallOutputReceiver(), 'Success: created install session [1234567890]\n')
        self.assertTrue(receiver.success)
        self.assertEqual(receiver.success_message, 'created install session [1234567890]')

    def test_failure(self):
        receiver = feed(InstallOutputReceiver(), 'Failure [INSTALL_FAILED_ALREADY_EXISTS]\n')
        self.assertFalse(receiver.success)
        self.assertEqual(receiver.error_message, 'INSTALL_FAILED_ALREADY_EXISTS')

    def test_failure_without_reason(self):
        receiver = feed(InstallOutputReceiver(), 'Failure\n')
        self.assertEqual(receiver.error_message, UNKNOWN_ERROR)

    def test_error(self):
        receiver = feed(InstallOutputReceiver(), 'Error: java.lang.IllegalArgumentException: Unknown package\n')
        self.assertEqual(receiver.error_message, 'java.lang.IllegalArgumentException: Unknown package')

    def test_last_line_wins(self):
        receiver = feed(InstallOutputReceiver(), 'Failure [INSTALL_FAILED_INVALID_APK]\nSuccess\n\n')
        self.assertTrue(receiver.success)
        self.assertIsNone(receiver.error_message)

        receiver = feed(InstallOutputReceiver(), 'Success\nFailure [INSTALL_FAILED_INVALID_APK]\n')
        self.assertFalse(receiver.success)
        self.assertEqual(receiver.error_message, 'INSTALL_FAILED_INVALID_APK')

    def test_unexpected_output(self):
        receiver = feed(InstallOutputReceiver(), '/system/bin/sh: pm: not found\n')
        self.assertEqual(receiver.error_message, UNKNOWN_ERROR)


class TestPackageManagerReceiver(unittest.TestCase):
    def test_packages(self):
        output = ('package:/system/app/LegacyCamera.apk=com.android.camera\n'
                  'package:/data/app/com.example.app-1/base.apk=com.example.app\n'
                  'package:/data/app/a=b.apk=com.example.equals\n'
                  'WARNING: linker: something\n'
                  'package:com.example.nopath\n')
        receiver = feed(PackageManagerReceiver(), output)
        self.assertEqual(receiver.packages, {'com.android.camera': '/system/app/LegacyCamera.apk',
                                             'com.example.app': '/data/app/com.example.app-1/base.apk',
                                             'com.example.equals': '/data/app/a=b.apk',
                                             'com.example.nopath': None})


class TestVersionInfoReceiver(unittest.TestCase):
    OUTPUT = ('Activity Resolver Table:\n'
              '  Non-Data Actions:\n'
              '      versionName=not.this.one\n'
              'Packages:\n'
              '  Package [com.example.app] (3b0d5f6):\n'
              '    userId=10085\n'
              '    versionCode=42 minSdk=21 targetSdk=30\n'
              '    versionName=1.2.3\n'
              '    splits=[base]\n'
              'Queries:\n'
              '    versionCode=7 minSdk=21 targetSdk=30\n')

    def test_version_info(self):
        receiver = feed(VersionInfoReceiver(), self.OUTPUT)
        self.assertEqual(receiver.version_info, VersionInfo(42, '1.2.3'))

    def test_not_installed(self):
        receiver = feed(VersionInfoReceiver(), 'Unable to find package: com.example.missing\n')
        self.assertIsNone(receiver.version_info)
