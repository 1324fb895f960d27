# runner.py
'''
Rebuild step of the command-line tool.

Reads the entry file, optionally pipes it through a shell command and writes
the result to a file or stdout. Runs synchronously on the watcher's loop.
'''

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Optional

from .errors import CommandError
from .log import LoggerMixin


def render(input_path: Path, command: Optional[str] = None) -> str:
  src = input_path.read_text(encoding='utf-8')
  if not command:
    return src
  proc = subprocess.run(command, shell=True, input=src, capture_output=True, text=True)
  if proc.returncode != 0:
    raise CommandError(command, proc.returncode, proc.stderr)
  return proc.stdout


def write(output: str, output_path: Optional[Path] = None) -> None:
  if output_path is None:
    sys.stdout.write(output)
    sys.stdout.flush()
    return
  output_path.parent.mkdir(parents=True, exist_ok=True)
  output_path.write_text(output, encoding='utf-8')


class Rebuilder(LoggerMixin):
  '''Callable used as the 'init' / 'update' listener.'''

  def __init__(
    self,
    input_path: Path,
    command: Optional[str] = None,
    output_path: Optional[Path] = None,
  ) -> None:
    self.input_path = input_path
    self.command = command
    self.output_path = output_path

  def __call__(self) -> bool:
    try:
      output = render(self.input_path, self.command)
    except CommandError as exc:
      self.log.error('Rebuild command failed', command=exc.command,
                     status=exc.returncode, stderr=exc.stderr.strip())
      return False
    except OSError as exc:
      self.log.error('Cannot read input', path=str(self.input_path), error=str(exc))
      return False
    write(output, self.output_path)
    return True
