"""
Watch mode: rebuild the site whenever a source file changes.

File-system events come from a watchdog observer thread and only ever
request a rebuild. Builds run on a single worker thread owned by
RebuildScheduler, so two builds never overlap, and a burst of events
that arrives during a build results in exactly one follow-up build.
"""

import os
import time
import logging
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .core import PagesmithError

logger = logging.getLogger('Pagesmith.watch')

REBUILD_EVENTS = {'created', 'modified', 'deleted', 'moved'}


class RebuildScheduler:
    """Coalesce rebuild requests and run them one at a time."""

    def __init__(self, build, debounce=0.2):
        self._build = build
        self.debounce = debounce
        self._requested = threading.Event()
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._thread = None
        self.builds_run = 0

    def request(self):
        """Ask for a rebuild. Safe to call from any thread."""
        self._requested.set()

    def run_now(self):
        """Run one build on the calling thread, logging any failure."""
        with self._lock:
            self.builds_run += 1
            try:
                result = self._build()
            except PagesmithError as e:
                logger.error(f"Build failed: {e}")
                return None
            except Exception:
                logger.exception("Unexpected error during rebuild")
                return None
            if result is not None and not result.ok:
                logger.error("Build produced no pages")
            return result

    def run_pending(self):
        """Run a single build if one was requested since the last one.

        Requests made while the build runs set the flag again and are
        picked up by the next call.
        """
        if not self._requested.is_set():
            return False
        if self.debounce:
            time.sleep(self.debounce)
        self._requested.clear()
        self.run_now()
        return True

    def _loop(self):
        while not self._stopped.is_set():
            if self._requested.wait(0.5) and not self._stopped.is_set():
                self.run_pending()

    def start(self):
        self._thread = threading.Thread(target=self._loop, name='pagesmith-rebuild', daemon=True)
        self._thread.start()

    def stop(self):
        self._stopped.set()
        self._requested.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None


class SourceChangeHandler(FileSystemEventHandler):
    """Forward relevant file-system events to the scheduler."""

    def __init__(self, scheduler, src_dir, documents, output_dir):
        super().__init__()
        self.scheduler = scheduler
        self.src_dir = os.path.abspath(src_dir)
        self.documents = {os.path.abspath(path) for path in documents}
        self.output_dir = os.path.abspath(output_dir)

    def is_relevant(self, path):
        path = os.path.abspath(os.fsdecode(path))
        if path == self.output_dir or path.startswith(self.output_dir + os.sep):
            return False
        if path in self.documents:
            return True
        return path.startswith(self.src_dir + os.sep)

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in REBUILD_EVENTS:
            return
        paths = [event.src_path]
        if getattr(event, 'dest_path', None):
            paths.append(event.dest_path)
        for path in paths:
            if self.is_relevant(path):
                logger.info(f"Change detected: {os.fsdecode(path)}")
                self.scheduler.request()
                return


def watch_directories(src_dir, documents):
    """Directories to observe, with their recursive flag."""
    directories = [(os.path.abspath(src_dir), True)]
    seen = {os.path.abspath(src_dir)}
    for document in documents:
        parent = os.path.dirname(os.path.abspath(document))
        if parent not in seen and os.path.isdir(parent):
            directories.append((parent, False))
            seen.add(parent)
    return directories


def watch(builder, debounce=0.2):
    """Build once, then rebuild on every relevant change until interrupted."""
    scheduler = RebuildScheduler(builder.build, debounce=debounce)
    scheduler.run_now()

    documents = list(builder.documents.values())
    handler = SourceChangeHandler(scheduler, builder.src_dir, documents, builder.output_dir)
    observer = Observer()
    for directory, recursive in watch_directories(builder.src_dir, documents):
        if os.path.isdir(directory):
            observer.schedule(handler, directory, recursive=recursive)
            logger.info(f"Watching {directory} for changes...")

    scheduler.start()
    observer.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping watcher...")
    finally:
        observer.stop()
        observer.join()
        scheduler.stop()
