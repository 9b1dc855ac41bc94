import logging
import threading
import unittest

from adb_client.models import InstallProgress, PackageInstallProgressState, SyncProgress
from adb_client.progress import InstallProgressAggregator, notify, transport_progress


class TestNotify(unittest.TestCase):
    def test_none(self):
        notify(None, SyncProgress(1, 2))

    def test_callback_exception_is_logged(self):
        def callback(progress):
            raise ValueError(progress)

        with self.assertLogs('adb_client.progress', logging.WARNING):
            notify(callback, SyncProgress(1, 2))


class TestTransportProgress(unittest.TestCase):
    def test_cumulative(self):
        events = []
        progress = transport_progress(events.append, 10)
        next(progress)

        for chunk_size in [4, 4, 2]:
            progress.send(chunk_size)

        self.assertEqual(events, [SyncProgress(4, 10), SyncProgress(8, 10), SyncProgress(10, 10)])


class TestInstallProgressAggregator(unittest.TestCase):
    def test_single_file(self):
        events = []
        aggregator = InstallProgressAggregator(events.append, 1)
        callback = aggregator.callback_for('app.apk')

        callback(SyncProgress(50, 100))
        callback(SyncProgress(100, 100))

        self.assertEqual(events, [InstallProgress(PackageInstallProgressState.UPLOADING, 0, 1, 50.),
                                  InstallProgress(PackageInstallProgressState.UPLOADING, 1, 1, 100.)])

        # The file already reached 100%
        aggregator.finish('app.apk')
        self.assertEqual(len(events), 2)

    def test_session_scale(self):
        events = []
        aggregator = InstallProgressAggregator(events.append, 2, 0.5)

        aggregator.update('base.apk', SyncProgress(100, 100))
        self.assertEqual(aggregator.upload_progress, 25.)

        aggregator.update('split.apk', SyncProgress(100, 100))
        self.assertEqual(aggregator.upload_progress, 50.)
        self.assertEqual(events[-1].upload_progress, 50.)

    def test_file_counts(self):
        events = []
        aggregator = InstallProgressAggregator(events.append, 3, 0.5)

        aggregator.update('base.apk', SyncProgress(100, 100))
        aggregator.update('split0.apk', SyncProgress(10, 100))
        aggregator.update('split1.apk', SyncProgress(100, 100))

        self.assertEqual([(event.package_finished, event.package_required) for event in events], [(1, 3), (1, 3), (2, 3)])

    def test_finish_empty_file(self):
        """A file without any reported progress counts as uploaded once it is finished."""
        events = []
        aggregator = InstallProgressAggregator(events.append, 2)

        aggregator.update('base.apk', SyncProgress(0, 0))
        aggregator.finish('base.apk')

        self.assertEqual(events, [InstallProgress(PackageInstallProgressState.UPLOADING, 0, 2, 0.),
                                  InstallProgress(PackageInstallProgressState.UPLOADING, 1, 2, 50.)])

    def test_monotonic(self):
        """A late, smaller report for a file does not lower the aggregate."""
        events = []
        aggregator = InstallProgressAggregator(events.append, 2)

        aggregator.update('a.apk', SyncProgress(80, 100))
        aggregator.update('a.apk', SyncProgress(40, 100))
        aggregator.update('b.apk', SyncProgress(20, 100))

        values = [event.upload_progress for event in events]
        self.assertEqual(values, [40., 40., 50.])

    def test_concurrent_updates(self):
        events = []
        aggregator = InstallProgressAggregator(events.append, 4)

        def upload(path):
            for received in range(1, 101):
                aggregator.update(path, SyncProgress(received, 100))

        threads = [threading.Thread(target=upload, args=('{}.apk'.format(i),)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        values = [event.upload_progress for event in events]
        self.assertEqual(len(values), 400)
        self.assertEqual(values, sorted(values))
        self.assertEqual(values[-1], 100.)
        self.assertEqual((events[-1].package_finished, events[-1].package_required), (4, 4))
