# test_watcher.py
'''
Tests for watcher.Watcher: init ordering, watch-set diffs, observer wiring.

Two-space indent, single quotes everywhere.
'''

from __future__ import annotations

import asyncio
import shutil
import time
from pathlib import Path

import pytest

from sass_watcher.errors import ObserverError, ResolutionError
from sass_watcher.watcher import Options, Watcher


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures & helpers
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def loop():
  'A loop that is driven by hand; nothing runs until _drain().'
  loop = asyncio.new_event_loop()
  yield loop
  loop.close()


@pytest.fixture
def root(tmp_path: Path) -> Path:
  return tmp_path.resolve()


def _write(path: Path, text: str = '') -> Path:
  path.parent.mkdir(parents=True, exist_ok=True)
  path.write_text(text, encoding='utf-8')
  return path.resolve()


def _drain(loop: asyncio.AbstractEventLoop) -> None:
  loop.run_until_complete(asyncio.sleep(0))


def _settle(loop: asyncio.AbstractEventLoop, wait: float = 0.5) -> None:
  'Give watchdog time to post its events, then run them on the loop.'
  time.sleep(wait)
  loop.run_until_complete(asyncio.sleep(0.05))


def _record(w: Watcher) -> list:
  events: list = []
  w.on('init', lambda: events.append('init'))
  w.on('update', lambda: events.append('update'))
  return events


# ─────────────────────────────────────────────────────────────────────────────
# 1. Construction
# ─────────────────────────────────────────────────────────────────────────────
def test_paths_are_absolute_and_defaults_apply(root, loop, monkeypatch):
  monkeypatch.chdir(root)
  w = Watcher('a.scss', loop=loop)
  assert w.input_paths == (root / 'a.scss',)
  assert w.include_paths == ()
  assert w.root_dir == Path.cwd()
  assert w.verbosity == 0
  assert w.include_extensions == ('scss', 'sass', 'css')
  assert w.watched_files == frozenset()


def test_options_are_normalised(root, loop):
  opts = Options(include_paths=[root / 'lib'], root_dir=root, include_extensions=['.css'])
  w = Watcher([root / 'a.scss', root / 'b.scss'], opts, loop=loop)
  assert w.include_paths == (root / 'lib',)
  assert w.root_dir == root
  assert w.include_extensions == ('css',)
  assert len(w.input_paths) == 2


def test_init_is_not_delivered_synchronously(root, loop):
  w = Watcher(root / 'a.scss', loop=loop)
  events = _record(w)
  assert events == []
  _drain(loop)
  assert events == ['init']
  _drain(loop)
  assert events == ['init']


def test_construction_outside_a_loop_needs_one(root):
  with pytest.raises(RuntimeError):
    Watcher(root / 'a.scss')


def test_init_inside_running_loop(root):
  async def scenario() -> list:
    w = Watcher(root / 'a.scss')
    events = _record(w)
    await asyncio.sleep(0)
    return events
  assert asyncio.run(scenario()) == ['init']


# ─────────────────────────────────────────────────────────────────────────────
# 2. Watch-set queries & diffs
# ─────────────────────────────────────────────────────────────────────────────
def test_currently_included_files_is_pure_and_deduplicated(root, loop):
  a = _write(root / 'a.scss', "@import 'common';")
  b = _write(root / 'b.scss', "@import 'common';")
  common = _write(root / '_common.scss')
  w = Watcher([a, b], loop=loop)
  assert w.currently_included_files() == {a, b, common}
  assert w.watched_files == frozenset()


def test_first_recompute_adds_everything_then_is_idempotent(root, loop):
  a = _write(root / 'a.scss', "@import 'b';")
  b = _write(root / 'b.scss')
  w = Watcher(a, loop=loop)

  added, removed = w.recompute_watch_set()
  assert added == {a, b} and removed == frozenset()
  assert w.watched_files == {a, b}

  assert w.recompute_watch_set() == (frozenset(), frozenset())


def test_diff_algebra(root, loop):
  a = _write(root / 'a.scss', "@import 'b';\n@import 'c';")
  _write(root / 'b.scss')
  c = _write(root / 'c.scss')
  d = _write(root / 'd.scss')
  w = Watcher(a, loop=loop)
  w.recompute_watch_set()
  previous = w.watched_files

  a.write_text("@import 'b';\n@import 'd';", encoding='utf-8')
  added, removed = w.recompute_watch_set()
  assert added == {d} and removed == {c}
  assert not added & removed
  assert w.watched_files == (previous - removed) | added


def test_deleted_import_is_removed(root, loop):
  'Scenario A, lenient resolver: the broken import is simply dropped.'
  a = _write(root / 'a.scss', "@import 'b';")
  b = _write(root / 'b.scss')
  w = Watcher(a, loop=loop)
  w.recompute_watch_set()

  b.unlink()
  assert w.recompute_watch_set() == (frozenset(), {b})
  assert w.watched_files == {a}


def test_import_edited_out_is_removed(root, loop):
  'Scenario A, the import is deleted from a.scss first.'
  a = _write(root / 'a.scss', "@import 'b';")
  b = _write(root / 'b.scss')
  w = Watcher(a, loop=loop)
  w.recompute_watch_set()

  a.write_text('.a {}', encoding='utf-8')
  assert w.recompute_watch_set() == (frozenset(), {b})
  assert w.watched_files == {a}


def test_resolution_error_keeps_last_known_good(root, loop):
  'Scenario A, strict resolver: the error propagates, nothing is replaced.'
  a = _write(root / 'a.scss', "@import 'b';")
  b = _write(root / 'b.scss')
  w = Watcher(a, Options(strict=True), loop=loop)
  w.recompute_watch_set()

  b.unlink()
  with pytest.raises(ResolutionError):
    w.recompute_watch_set()
  assert w.watched_files == {a, b}


def test_shared_import_stays_watched(root, loop):
  'Scenario C: common.scss is still reachable through b.scss.'
  a = _write(root / 'a.scss', "@import 'common';")
  b = _write(root / 'b.scss', "@import 'common';")
  common = _write(root / 'common.scss')
  w = Watcher([a, b], loop=loop)
  w.recompute_watch_set()

  a.write_text('.a {}', encoding='utf-8')
  added, removed = w.recompute_watch_set()
  assert common not in removed
  assert removed == frozenset() and added == frozenset()
  assert w.watched_files == {a, b, common}


# ─────────────────────────────────────────────────────────────────────────────
# 3. Event handlers (driven directly, observers not started)
# ─────────────────────────────────────────────────────────────────────────────
def test_structural_event_without_diff_is_silent(root, loop):
  a = _write(root / 'a.scss')
  w = Watcher(a, loop=loop)
  w.recompute_watch_set()
  events = _record(w)
  _drain(loop)

  w._on_structural('add', root / 'unrelated.scss')
  assert events == ['init']


def test_structural_removal_emits_update(root, loop):
  a = _write(root / 'a.scss', "@import 'b';")
  b = _write(root / 'b.scss')
  w = Watcher(a, loop=loop)
  w.recompute_watch_set()
  events = _record(w)
  _drain(loop)

  b.unlink()
  w._on_structural('unlink', b)
  assert events == ['init', 'update']


def test_change_always_emits_update(root, loop):
  a = _write(root / 'a.scss')
  w = Watcher(a, loop=loop)
  w.recompute_watch_set()
  events = _record(w)
  _drain(loop)

  w._on_change('change', a)
  assert events == ['init', 'update']


def test_resolution_error_goes_to_error_listener(root, loop):
  a = _write(root / 'a.scss', "@import 'b';")
  b = _write(root / 'b.scss')
  w = Watcher(a, Options(strict=True), loop=loop)
  w.recompute_watch_set()
  events = _record(w)
  errors: list = []
  w.on('error', errors.append)

  b.unlink()
  w._on_change('change', a)
  assert events == []
  assert len(errors) == 1 and isinstance(errors[0], ResolutionError)
  assert w.watched_files == {a, b}


def test_resolution_error_propagates_without_listener(root, loop):
  a = _write(root / 'a.scss', "@import 'b';")
  b = _write(root / 'b.scss')
  w = Watcher(a, Options(strict=True), loop=loop)
  w.recompute_watch_set()

  b.unlink()
  with pytest.raises(ResolutionError):
    w._on_structural('unlink', b)


def test_off_removes_listener(root, loop):
  w = Watcher(root / 'a.scss', loop=loop)
  events: list = []
  cb = lambda: events.append('init')
  w.on('init', cb).off('init', cb)
  _drain(loop)
  assert events == []


# ─────────────────────────────────────────────────────────────────────────────
# 4. With real observers
# ─────────────────────────────────────────────────────────────────────────────
def test_start_populates_file_observer(root, loop):
  a = _write(root / 'a.scss', "@import 'b';")
  b = _write(root / 'b.scss')
  with Watcher(a, Options(root_dir=root), loop=loop) as w:
    w.start()
    assert w.watched_files == {a, b}
    assert w._files.watched == {a, b}


def test_new_import_joins_subscription(root, loop):
  'Scenario B: a.scss starts importing a freshly created c.scss.'
  a = _write(root / 'a.scss', '.a {}')
  with Watcher(a, Options(root_dir=root), loop=loop) as w:
    w.start()
    c = _write(root / 'c.scss')
    a.write_text("@import 'c';", encoding='utf-8')

    added, removed = w.recompute_watch_set()
    assert added == {c} and removed == frozenset()
    assert c in w._files.watched


def test_start_failure_releases_observers(root, loop):
  with pytest.raises(ResolutionError):
    with Watcher(root / 'missing.scss', Options(root_dir=root), loop=loop) as w:
      w.start()
  assert w._closed
  assert not w._tree._observer.is_alive()


def test_update_after_edit_end_to_end(root):
  a = _write(root / 'a.scss', '.a {}')

  async def scenario() -> list:
    events: list = []
    updated = asyncio.Event()
    w = Watcher(a, Options(root_dir=root))
    w.on('init', lambda: events.append('init'))
    w.on('update', lambda: (events.append('update'), updated.set()))
    with w:
      w.start()
      await asyncio.sleep(0.2)
      a.write_text('.a { color: red; }', encoding='utf-8')
      await asyncio.wait_for(updated.wait(), 5)
    return events

  events = asyncio.run(scenario())
  assert events[0] == 'init'
  assert 'update' in events


def test_new_partial_is_picked_up_by_tree_observer(root):
  a = _write(root / 'a.scss', "@import 'later';")

  async def scenario() -> frozenset:
    updated = asyncio.Event()
    w = Watcher(a, Options(root_dir=root))
    w.on('update', updated.set)
    with w:
      w.start()
      assert w.watched_files == {a}
      await asyncio.sleep(0.2)
      _write(root / '_later.scss')
      await asyncio.wait_for(updated.wait(), 5)
      return w.watched_files

  assert asyncio.run(scenario()) == {a, root / '_later.scss'}


def test_irrelevant_extension_triggers_nothing(root, monkeypatch):
  'Scenario D: with only css relevant, a new .scss file is never looked at.'
  a = _write(root / 'a.css')
  calls: list = []

  async def scenario() -> None:
    w = Watcher(a, Options(root_dir=root, include_extensions=['css']))
    original = w.recompute_watch_set
    monkeypatch.setattr(w, 'recompute_watch_set', lambda: calls.append(1) or original())
    with w:
      w.start()
      await asyncio.sleep(0.2)
      _write(root / 'new.scss')
      await asyncio.sleep(0.5)

  asyncio.run(scenario())
  assert calls == []


def test_close_cancels_pending_init(root, loop):
  w = Watcher(root / 'a.scss', loop=loop)
  events = _record(w)
  w.close()
  _drain(loop)
  assert events == []


def test_recreated_directory_is_watched_again(root, loop):
  'The directory comes back before the loop sees it go: no diff, new watch.'
  a = _write(root / 'a.scss', "@import 'partials/x';")
  x = _write(root / 'partials' / '_x.scss')
  with Watcher(a, Options(root_dir=root), loop=loop) as w:
    events = _record(w)
    w.start()

    shutil.rmtree(root / 'partials')
    x = _write(root / 'partials' / '_x.scss', '.x {}')
    _settle(loop)
    assert w.watched_files == {a, x}

    events.clear()
    x.write_text('.x { color: red; }', encoding='utf-8')
    _settle(loop)
    assert 'update' in events


def test_observer_failure_keeps_watch_set(root, loop, monkeypatch):
  a = _write(root / 'a.scss', '.a {}')
  with Watcher(a, Options(root_dir=root), loop=loop) as w:
    w.start()
    _write(root / 'c.scss')
    a.write_text("@import 'c';", encoding='utf-8')

    def _fail(paths):
      raise ObserverError('cannot watch')
    monkeypatch.setattr(w._files, 'add', _fail)

    with pytest.raises(ObserverError):
      w.recompute_watch_set()
    assert w.watched_files == {a}
    assert w._files.watched == {a}
