# observers.py
'''
Event-driven file-watching based on the `watchdog` library.

API
---
watch_tree(root, extensions)  ->  TreeObserver
    • structural events below *root*: 'add', 'addDir', 'unlink', 'unlinkDir'
    • files whose extension is not in *extensions* are ignored, directories never are
watch_files(paths)            ->  FileObserver
    • 'change' events for exactly the given files
    • add(paths) / unwatch(paths) adjust the file list while running

Both handles: on(event, callback(Path)), start(), close().
Callbacks run on the watchdog thread.
'''

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from .errors import ObserverError

STRUCTURAL_EVENTS = ('add', 'addDir', 'unlink', 'unlinkDir')


# ─────────────────────────────────────────────────────────────────────────────
# Shared handle plumbing
# ─────────────────────────────────────────────────────────────────────────────
class _Handle:
  def __init__(self) -> None:
    self._observer = Observer()
    self._listeners: Dict[str, List[Callable[[Path], None]]] = {}
    self._closed = False

  def on(self, event: str, callback: Callable[[Path], None]) -> '_Handle':
    self._listeners.setdefault(event, []).append(callback)
    return self

  def _fire(self, event: str, path: Path) -> None:
    for cb in list(self._listeners.get(event, ())):
      cb(path)

  def _schedule(self, handler: FileSystemEventHandler, directory: Path, recursive: bool) -> ObservedWatch:
    try:
      return self._observer.schedule(handler, str(directory), recursive=recursive)
    except OSError as exc:
      raise ObserverError(f'Cannot watch "{directory}": {exc}', directory) from exc

  def start(self) -> None:
    try:
      self._observer.start()
    except OSError as exc:
      raise ObserverError(f'Cannot start observer: {exc}') from exc

  def close(self) -> None:
    '''Stop the observer thread; safe to call more than once.'''
    if self._closed:
      return
    self._closed = True
    if self._observer.is_alive():
      self._observer.stop()
      self._observer.join()


# ─────────────────────────────────────────────────────────────────────────────
# Coarse: whole subtree, structural events only
# ─────────────────────────────────────────────────────────────────────────────
class _TreeHandler(FileSystemEventHandler):
  def __init__(self, owner: 'TreeObserver') -> None:
    super().__init__()
    self._owner = owner

  def on_created(self, event: FileSystemEvent) -> None:  # type: ignore[override]
    self._owner._structural('addDir' if event.is_directory else 'add', event.src_path, event.is_directory)

  def on_deleted(self, event: FileSystemEvent) -> None:  # type: ignore[override]
    self._owner._structural('unlinkDir' if event.is_directory else 'unlink', event.src_path, event.is_directory)

  # a rename is a removal at the old path and a creation at the new one
  def on_moved(self, event: FileSystemEvent) -> None:  # type: ignore[override]
    self.on_deleted(event)
    self._owner._structural('addDir' if event.is_directory else 'add', event.dest_path, event.is_directory)


class TreeObserver(_Handle):
  def __init__(self, root: str | Path, extensions: Iterable[str]) -> None:
    super().__init__()
    self.root = Path(root).resolve()
    self.extensions = tuple(e.lstrip('.') for e in extensions)
    self._schedule(_TreeHandler(self), self.root, recursive=True)

  def is_relevant(self, path: Path, is_directory: bool = False) -> bool:
    return is_directory or path.suffix[1:] in self.extensions

  def _structural(self, event: str, src_path: str | bytes, is_directory: bool) -> None:
    path = Path(os.fsdecode(src_path))
    if self.is_relevant(path, is_directory):
      self._fire(event, path)


# ─────────────────────────────────────────────────────────────────────────────
# Fine: exact file list, content events only
# ─────────────────────────────────────────────────────────────────────────────
class _FileHandler(FileSystemEventHandler):
  def __init__(self, owner: 'FileObserver') -> None:
    super().__init__()
    self._owner = owner

  # “modified” also fires on create/overwrite for most editors
  def on_modified(self, event: FileSystemEvent) -> None:  # type: ignore[override]
    if not event.is_directory:
      self._owner._content(event.src_path)

  # editors that save atomically replace the file instead of writing to it
  def on_created(self, event: FileSystemEvent) -> None:  # type: ignore[override]
    if not event.is_directory:
      self._owner._content(event.src_path)

  def on_moved(self, event: FileSystemEvent) -> None:  # type: ignore[override]
    if not event.is_directory:
      self._owner._content(event.dest_path)


class FileObserver(_Handle):
  '''
  Watchdog observes directories, so every watched file's parent directory is
  scheduled once (non-recursive) and events are filtered by membership.
  '''

  def __init__(self, paths: Iterable[str | Path] = ()) -> None:
    super().__init__()
    self._handler = _FileHandler(self)
    self._files: Set[Path] = set()
    self._dirs: Dict[Path, ObservedWatch] = {}
    self._lock = threading.Lock()
    self.add(paths)

  @property
  def watched(self) -> frozenset:
    with self._lock:
      return frozenset(self._files)

  # _dirs is touched only by the owning thread; _lock guards _files, which the
  # watchdog dispatcher reads while holding the observer's own lock
  def add(self, paths: Iterable[str | Path]) -> None:
    paths = [Path(p).resolve() for p in paths]
    for p in paths:
      if p.parent not in self._dirs:
        self._dirs[p.parent] = self._schedule(self._handler, p.parent, recursive=False)
    with self._lock:
      self._files.update(paths)

  def unwatch(self, paths: Iterable[str | Path]) -> None:
    with self._lock:
      self._files.difference_update(Path(p).resolve() for p in paths)
      in_use = {f.parent for f in self._files}
    for d in [d for d in self._dirs if d not in in_use]:
      self._observer.unschedule(self._dirs.pop(d))

  def refresh(self, directory: str | Path) -> bool:
    '''
    Reschedule every watched directory at or below *directory*.

    An inotify watch dies with its directory; a directory recreated under the
    same name needs a new one. Returns True if anything was rescheduled.
    '''
    directory = Path(directory).resolve()
    stale = [d for d in self._dirs if d == directory or directory in d.parents]
    for d in stale:
      self._observer.unschedule(self._dirs.pop(d))
      if d.is_dir():
        self._dirs[d] = self._schedule(self._handler, d, recursive=False)
    return bool(stale)

  def _content(self, src_path: str | bytes) -> None:
    p = Path(os.fsdecode(src_path)).resolve()
    with self._lock:
      hit = p in self._files
    if hit:                       # ignore temp files etc.
      self._fire('change', p)


def watch_tree(root: str | Path, extensions: Iterable[str]) -> TreeObserver:
  return TreeObserver(root, extensions)


def watch_files(paths: Iterable[str | Path]) -> FileObserver:
  return FileObserver(paths)
