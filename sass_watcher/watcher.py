# watcher.py
'''
Keep track of every file that affects a set of stylesheet entry points.

Public call
-----------
    w = Watcher(input_paths, options: Options | None = None, *, loop=None)
    w.on('init' | 'update' | 'error', callback)
    w.start()
    ...
    w.close()

The watch-set is the union of all files reachable from the entry points.
Two observers keep it current:
    • a tree observer on root_dir notices files appearing or disappearing
    • a file observer on the watch-set notices edits, which may change imports
Both funnel into recompute_watch_set(), the one place the watch-set changes.

Observer callbacks arrive on watchdog threads and are handed to *loop* with
call_soon_threadsafe, so every recomputation runs on the loop thread, one
event at a time, in arrival order.
'''

from __future__ import annotations

import asyncio
import functools
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import ResolutionError
from .graph import DEFAULT_EXTENSIONS, parse_file
from .log import LoggerMixin
from .observers import STRUCTURAL_EVENTS, FileObserver, TreeObserver, watch_files, watch_tree

Diff = Tuple[frozenset, frozenset]


# ─────────────────────────────────────────────────────────────────────────────
# Options — fixed for the lifetime of a Watcher
# ─────────────────────────────────────────────────────────────────────────────
class Options:
  def __init__(
    self,
    include_paths: Iterable[str | Path] = (),
    root_dir: str | Path | None = None,
    verbosity: int = 0,
    include_extensions: Iterable[str] | None = None,
    strict: bool = False,
  ) -> None:
    self.include_paths = include_paths
    self.root_dir = root_dir
    self.verbosity = verbosity
    self.include_extensions = include_extensions
    self.strict = strict


_DESCRIPTIONS = {
  'add': 'New file is added',
  'addDir': 'New directory is added',
  'unlink': 'File is removed',
  'unlinkDir': 'Directory is removed',
  'change': 'File is modified',
}


# ─────────────────────────────────────────────────────────────────────────────
# Watcher
# ─────────────────────────────────────────────────────────────────────────────
class Watcher(LoggerMixin):
  default_extensions = DEFAULT_EXTENSIONS

  def __init__(
    self,
    input_paths: str | Path | Iterable[str | Path],
    options: Optional[Options] = None,
    *,
    loop: Optional[asyncio.AbstractEventLoop] = None,
  ) -> None:
    options = options or Options()
    if isinstance(input_paths, (str, Path)):
      input_paths = [input_paths]

    self.input_paths = tuple(Path(p).resolve() for p in input_paths)
    self.include_paths = tuple(Path(p).resolve() for p in options.include_paths)
    self.root_dir = Path(options.root_dir).resolve() if options.root_dir else Path.cwd()
    self.verbosity = options.verbosity or 0
    self.include_extensions = tuple(
      e.lstrip('.') for e in (options.include_extensions or self.default_extensions)
    )
    self.strict = options.strict

    self._watched: frozenset = frozenset()
    self._listeners: Dict[str, List[Callable]] = {}
    self._tree: Optional[TreeObserver] = None
    self._files: Optional[FileObserver] = None
    self._closed = False
    # raises RuntimeError when constructed outside a loop without *loop*
    self._loop = loop if loop is not None else asyncio.get_running_loop()

    if self.verbosity >= 1:
      self.log.info('Start watching', inputs=[str(p) for p in self.input_paths])

    # never inline: listeners attached right after construction must see it
    self._init = self._loop.call_soon(self._emit, 'init')

  # --- listeners -------------------------------------------------------------
  def on(self, event: str, callback: Callable) -> 'Watcher':
    self._listeners.setdefault(event, []).append(callback)
    return self

  def off(self, event: str, callback: Callable) -> 'Watcher':
    callbacks = self._listeners.get(event, [])
    if callback in callbacks:
      callbacks.remove(callback)
    return self

  def _emit(self, event: str, *args: object) -> None:
    if self._closed:
      return
    for cb in list(self._listeners.get(event, ())):
      cb(*args)

  # --- lifecycle -------------------------------------------------------------
  def start(self) -> None:
    '''Start the tree observer, then the file observer on the initial watch-set.'''
    try:
      self._start_tree_observer()
      self._start_file_observer()
    except BaseException:
      self.close()
      raise

  def close(self) -> None:
    if self._closed:
      return
    self._closed = True
    self._init.cancel()
    for handle in (self._tree, self._files):
      if handle is not None:
        handle.close()

  def __enter__(self) -> 'Watcher':
    return self

  def __exit__(self, *exc_info: object) -> None:
    self.close()

  @property
  def watched_files(self) -> frozenset:
    return self._watched

  # --- observers -------------------------------------------------------------
  def _post(self, handler: Callable[[str, Path], None], event: str, path: Path) -> None:
    '''Runs on a watchdog thread: hand the event over to the loop thread.'''
    if not self._loop.is_closed():
      self._loop.call_soon_threadsafe(handler, event, path)

  def _start_tree_observer(self) -> None:
    self._tree = watch_tree(self.root_dir, self.include_extensions)
    for name in STRUCTURAL_EVENTS:
      self._tree.on(name, functools.partial(self._post, self._on_structural, name))
    self._tree.start()

  def _start_file_observer(self) -> None:
    self._watched = self.currently_included_files()
    self._files = watch_files(self._watched)
    self._files.on('change', functools.partial(self._post, self._on_change, 'change'))

    if self.verbosity >= 2:
      self.log.info('Initially watched files', files=_names(self._watched))

    self._files.start()

  def _on_structural(self, event: str, path: Path) -> None:
    if self._closed:
      return
    # a recreated directory needs fresh watches even when the graph is unchanged
    refreshed = event == 'addDir' and self._files is not None and self._files.refresh(path)
    diff = self._recompute_or_report()
    if diff is None:
      return
    added, removed = diff
    if added or removed or refreshed:
      if self.verbosity >= 2:
        self.log.info(_DESCRIPTIONS[event], path=str(path))
      self._emit('update')

  def _on_change(self, event: str, path: Path) -> None:
    if self._closed:
      return
    if self._recompute_or_report() is None:
      return
    if self.verbosity >= 2:
      self.log.info(_DESCRIPTIONS[event], path=str(path))
    # the file's own content changed even when its imports did not
    self._emit('update')

  def _recompute_or_report(self) -> Optional[Diff]:
    try:
      return self.recompute_watch_set()
    except ResolutionError as exc:
      if not self._listeners.get('error'):
        raise
      self._emit('error', exc)
      return None

  # --- watch-set -------------------------------------------------------------
  def currently_included_files(self) -> frozenset:
    '''Resolve every entry point afresh; does not touch the watch-set.'''
    files: set = set()
    for path in self.input_paths:
      graph = parse_file(path, self.include_paths, self.include_extensions, strict=self.strict)
      files.update(graph.index)
    return frozenset(files)

  def recompute_watch_set(self) -> Diff:
    '''
    Re-resolve the graph, swap in the new watch-set and bring the file
    observer in line with it. Returns ``(added, removed)``.

    Resolution completes before anything is replaced, so a ResolutionError
    leaves the previous watch-set in place. The file observer is updated
    before the swap, so an ObserverError does the same.
    '''
    new_watched = self.currently_included_files()
    added = new_watched - self._watched
    removed = self._watched - new_watched

    if self._files is not None:
      self._files.add(added)
      self._files.unwatch(removed)
    self._watched = new_watched

    if self.verbosity >= 3 and added:
      self.log.debug('Start watching files', files=_names(added))
    if self.verbosity >= 3 and removed:
      self.log.debug('Stop watching files', files=_names(removed))
    if self.verbosity >= 3 and (added or removed):
      self.log.debug('Currently watched files', files=_names(new_watched))

    return added, removed


def _names(paths: Iterable[Path]) -> List[str]:
  return sorted(str(p) for p in paths)
