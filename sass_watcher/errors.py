# errors.py
'''Exception hierarchy shared by the resolver, the observers and the watcher.'''

from __future__ import annotations

from pathlib import Path
from typing import Optional


class SassWatcherError(Exception):
  '''Base class; *path* names the file or directory involved, if any.'''

  def __init__(self, message: str, path: Optional[Path] = None) -> None:
    super().__init__(message)
    self.path = path


class ResolutionError(SassWatcherError):
  '''An entry file or one of its imports could not be located or read.'''


class ObserverError(SassWatcherError):
  '''The underlying filesystem observer could not be started or extended.'''


class CommandError(SassWatcherError):
  '''The rebuild command exited with a non-zero status.'''

  def __init__(self, command: str, returncode: int, stderr: str = '') -> None:
    super().__init__(f'Command "{command}" exited with status {returncode}')
    self.command = command
    self.returncode = returncode
    self.stderr = stderr
