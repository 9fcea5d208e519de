"""
Directory Watcher

Follows the results directory the server writes into. The directory is
polled: every file's (size, mtime) is compared with the last poll, and a
new or changed file is handed to the importer once it has stopped changing
for `debounce` seconds, so a half-written export is never read.

Files that become ready in the same poll are imported in ascending file
name order, like the startup scan.

Usage:
    watcher = DirectoryWatcher('results/', importer, poll_interval=1.0)
    watcher.scan_once()
    watcher.start()
    ...
    watcher.stop()
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Tuple, Union

from .result_importer import ImportSummary, ResultImporter
from .result_parser import classify_filename

logger = logging.getLogger(__name__)

FileSignature = Tuple[int, int]  # (size, mtime_ns)


class DirectoryWatcher:
    """Polling change feed for one results directory"""

    def __init__(self,
                 directory: Union[str, Path],
                 importer: ResultImporter,
                 poll_interval: float = 1.0,
                 debounce: float = 1.0,
                 clock: Callable[[], float] = time.monotonic):
        self.directory = Path(directory)
        self.importer = importer
        self.poll_interval = poll_interval
        self.debounce = debounce
        self._clock = clock

        self._handled: Dict[str, FileSignature] = {}
        self._pending: Dict[str, Tuple[FileSignature, float]] = {}  # name -> (signature, stable since)

        self.worker_thread = None
        self.running = False
        self._wakeup = threading.Event()

    def _snapshot(self) -> Dict[str, FileSignature]:
        if not self.directory.is_dir():
            logger.debug("[Watcher] %s does not exist (yet)", self.directory)
            return {}

        snapshot = {}
        for path in self.directory.iterdir():
            if classify_filename(path.name) is None:
                continue
            try:
                stat = path.stat()
            except OSError:
                continue  # removed between listing and stat
            if path.is_file():
                snapshot[path.name] = (stat.st_size, stat.st_mtime_ns)
        return snapshot

    def scan_once(self) -> ImportSummary:
        """Import everything currently in the directory"""
        snapshot = self._snapshot()
        summary = self.importer.import_directory(self.directory)
        self._handled.update(snapshot)
        return summary

    def poll(self) -> List[str]:
        """
        One poll of the directory

        Returns:
            names of the files handed to the importer, in import order
        """
        snapshot = self._snapshot()
        now = self._clock()

        for name in list(self._pending):
            if name not in snapshot:
                del self._pending[name]

        for name, signature in snapshot.items():
            if self._handled.get(name) == signature:
                self._pending.pop(name, None)
                continue
            pending = self._pending.get(name)
            if pending is None or pending[0] != signature:
                self._pending[name] = (signature, now)

        ready = sorted(name for name, (_, since) in self._pending.items()
                       if now - since >= self.debounce)
        if not ready:
            return []

        for name in ready:
            signature, _ = self._pending.pop(name)
            self._handled[name] = signature

        logger.info("[Watcher] %d changed file(s): %s", len(ready), ', '.join(ready))
        self.importer.import_files(self.directory / name for name in ready)
        return ready

    def start(self):
        """Start background polling thread"""
        if self.running:
            logger.debug("[Watcher] Already running")
            return

        self.running = True
        self._wakeup.clear()
        self.worker_thread = threading.Thread(
            target=self._worker_loop,
            name="DirectoryWatcher",
            daemon=True
        )
        self.worker_thread.start()
        logger.info("[Watcher] Watching %s (poll every %.1fs)", self.directory, self.poll_interval)

    def stop(self, timeout: float = 5.0):
        """Stop polling thread; an import in progress is allowed to finish"""
        if not self.running:
            return

        self.running = False
        self._wakeup.set()
        if self.worker_thread:
            self.worker_thread.join(timeout=timeout)
        logger.info("[Watcher] Stopped")

    def _worker_loop(self):
        while self.running:
            try:
                self.poll()
            except Exception:
                logger.exception("[Watcher] Poll of %s failed", self.directory)
            self._wakeup.wait(self.poll_interval)
