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

"""Progress reporting for file transfers and package installations.

.. rubric:: Contents

* :class:`InstallProgressAggregator`

    * :meth:`InstallProgressAggregator.callback_for`
    * :meth:`InstallProgressAggregator.update`

* :func:`notify`
* :func:`transport_progress`

"""


import logging
from threading import Lock

from .models import InstallProgress, PackageInstallProgressState, SyncProgress


_LOGGER = logging.getLogger(__name__)


def notify(callback, progress):
    """Call a user-supplied progress callback.

    Exceptions raised by the callback are logged and do not interrupt the operation.

    Parameters
    ----------
    callback : function, None
        The callback
    progress : SyncProgress, InstallProgress
        The value that will be passed to ``callback``

    """
    if callback is None:
        return

    try:
        callback(progress)
    except Exception:  # pylint: disable=broad-except
        _LOGGER.warning("Progress callback %r raised an exception", callback, exc_info=True)


def transport_progress(callback, total_bytes):
    """A generator that accumulates the transferred byte count and reports it.

    Usage::

        progress = transport_progress(callback, total_bytes)
        next(progress)
        progress.send(len(chunk))

    Parameters
    ----------
    callback : function, None
        Called with a :class:`~adb_client.models.SyncProgress` after every chunk
    total_bytes : int
        The total size of the transfer, or 0 if it is unknown

    """
    received = 0
    while True:
        chunk_size = yield
        received += chunk_size
        notify(callback, SyncProgress(received, total_bytes))


class InstallProgressAggregator(object):
    """Combine the upload progress of several files into one :class:`~adb_client.models.InstallProgress` stream.

    The upload progress of every file is kept as the highest percentage reported for it, so that the aggregated
    value never decreases when files are uploaded concurrently.  The aggregate is
    ``sum(percentages) / file_count * scale``.  Every event also carries the number of files that have been
    uploaded completely and the number of files in the batch.

    Parameters
    ----------
    callback : function, None
        Called with an :class:`~adb_client.models.InstallProgress` every time the aggregate is updated
    file_count : int
        The number of files being uploaded
    scale : float
        The share of the overall install that the upload accounts for; a session install uses ``0.5``

    """
    def __init__(self, callback, file_count, scale=1.):
        self._callback = callback
        self._file_count = file_count
        self._scale = scale
        self._lock = Lock()
        self._progress = {}
        self._finished = set()

    @property
    def upload_progress(self):
        """The current aggregated upload percentage."""
        with self._lock:
            return self._aggregate()

    def _aggregate(self):
        return sum(self._progress.values()) / max(self._file_count, 1) * self._scale

    def _report(self):
        notify(self._callback, InstallProgress(PackageInstallProgressState.UPLOADING, len(self._finished), self._file_count, self._aggregate()))

    def update(self, path, progress):
        """Record the progress of one file and report the new aggregate.

        Parameters
        ----------
        path : str
            The local path of the file
        progress : SyncProgress
            The latest progress of that file

        """
        with self._lock:
            percentage = max(self._progress.get(path, 0.), progress.progress_percentage)
            self._progress[path] = percentage
            if percentage >= 100.:
                self._finished.add(path)

            self._report()

    def finish(self, path):
        """Mark the upload of ``path`` as complete.

        An event is only reported if the progress updates had not already reached 100%, e.g., for an empty file.

        """
        with self._lock:
            if path in self._finished:
                return

            self._progress[path] = 100.
            self._finished.add(path)
            self._report()

    def callback_for(self, path):
        """Get a :class:`~adb_client.models.SyncProgress` callback that feeds :meth:`update` for ``path``."""
        return lambda progress: self.update(path, progress)
