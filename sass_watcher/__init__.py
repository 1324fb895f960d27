# sass_watcher/__init__.py
from importlib.metadata import version, PackageNotFoundError

try:
  __version__ = version('sass-watcher')
except PackageNotFoundError:      # development mode
  __version__ = '0.0.0.dev0'

from .errors import SassWatcherError, ResolutionError, ObserverError  # re-export
from .graph import parse_file, DEFAULT_EXTENSIONS                     # re-export
from .observers import watch_tree, watch_files                        # re-export
from .watcher import Watcher, Options                                 # re-export

__all__ = [
  'Watcher', 'Options',
  'parse_file', 'DEFAULT_EXTENSIONS',
  'watch_tree', 'watch_files',
  'SassWatcherError', 'ResolutionError', 'ObserverError',
]
