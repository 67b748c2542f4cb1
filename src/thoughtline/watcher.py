"""File watcher that drops cached query results for changed markdown files."""

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .cache import QueryCache
from .config import WATCH_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)


class DebouncedHandler(FileSystemEventHandler):
    """File system event handler with debouncing."""

    def __init__(
        self,
        callback: Callable[[set[Path]], None],
        debounce_seconds: float = WATCH_DEBOUNCE_SECONDS,
    ):
        """Initialize the debounced handler.

        Args:
            callback: Function to call with changed files after debounce.
            debounce_seconds: Debounce window in seconds.
        """
        super().__init__()
        self._callback = callback
        self._debounce_seconds = debounce_seconds
        self._pending_files: set[Path] = set()
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def _fire(self) -> None:
        with self._lock:
            files = self._pending_files.copy()
            self._pending_files.clear()
            self._timer = None
        if files:
            self._callback(files)

    def _schedule_callback(self) -> None:
        """Schedule the callback after debounce period (caller holds the lock)."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(self._debounce_seconds, self._fire)
        self._timer.daemon = True
        self._timer.start()

    def _add(self, path: Path) -> bool:
        # Only markdown files
        if path.suffix.lower() != ".md":
            return False
        self._pending_files.add(path)
        return True

    def _handle_event(self, event: FileSystemEvent) -> None:
        """Handle a file system event."""
        if event.is_directory:
            return

        with self._lock:
            if self._add(Path(str(event.src_path))):
                self._schedule_callback()

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file move/rename: both ends count as changed."""
        if event.is_directory:
            return

        dest = getattr(event, "dest_path", None)
        with self._lock:
            changed = self._add(Path(str(event.src_path)))
            if dest:
                changed = self._add(Path(str(dest))) or changed
            if changed:
                self._schedule_callback()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending_files.clear()


class FileWatcher:
    """Watch a vault directory and invalidate cached results for changed notes."""

    def __init__(
        self,
        cache: QueryCache,
        vault_root: Path,
        debounce_seconds: float = WATCH_DEBOUNCE_SECONDS,
    ):
        """Initialize the file watcher.

        Args:
            cache: QueryCache to invalidate on changes.
            vault_root: Vault directory to watch (recursively).
            debounce_seconds: Debounce window for batching invalidations.
        """
        self._cache = cache
        self._vault_root = Path(vault_root)
        self._debounce_seconds = debounce_seconds
        self._observer: Observer | None = None
        self._handler: DebouncedHandler | None = None
        self._running = False

    def _on_files_changed(self, files: set[Path]) -> None:
        """Handle changed files after debounce.

        Args:
            files: Set of changed file paths.
        """
        root = self._vault_root.resolve()
        removed = 0
        for file_path in files:
            try:
                relative = file_path.resolve().relative_to(root).as_posix()
            except ValueError:
                logger.debug(f"Ignoring change outside vault: {file_path}")
                continue
            removed += self._cache.invalidate(relative)
        logger.info(f"{len(files)} changed files, {removed} cached results dropped")

    def start(self) -> None:
        """Start watching for file changes."""
        if self._running:
            return

        if not self._vault_root.exists():
            logger.warning(f"Vault root does not exist: {self._vault_root}")
            return

        self._observer = Observer()
        self._handler = DebouncedHandler(
            callback=self._on_files_changed,
            debounce_seconds=self._debounce_seconds,
        )
        self._observer.schedule(self._handler, str(self._vault_root), recursive=True)
        self._observer.start()
        self._running = True
        logger.info(f"Started watching: {self._vault_root}")

    def stop(self) -> None:
        """Stop watching for file changes."""
        if not self._running or self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        if self._handler is not None:
            self._handler.cancel()
        self._observer = None
        self._handler = None
        self._running = False
        logger.info("Stopped file watcher")

    @property
    def is_running(self) -> bool:
        """Check if watcher is running."""
        return self._running

    def __enter__(self) -> "FileWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
