import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__

MESSAGES = {
  'NO_INPUT_PATH': 'Error: expected an input path',
  'EXTRA_POS_ARGS': 'Error: expected only one input path',
  'EXTRA_OUTPUT_PATH': 'Error: expected only one output path',
  'EXTRA_ROOT_DIR': 'Error: expected only one root dir',
  'EXTRA_COMMAND': 'Error: expected only one command',
}


class _Once(argparse.Action):
  '''Store a value, refusing a second occurrence of the same option.'''

  def __init__(self, *args, message: str, **kwargs) -> None:
    super().__init__(*args, **kwargs)
    self.message = message

  def __call__(self, parser, namespace, values, option_string=None):
    if getattr(namespace, self.dest, None) is not None:
      parser.error(MESSAGES[self.message])
    setattr(namespace, self.dest, values)


def _csv(value: str) -> List[str]:
  return [v.strip().lstrip('.') for v in value.split(',') if v.strip()]


def parse_argv(argv: Optional[List[str]] = None) -> argparse.Namespace:
  '''
  Parse command-line arguments for *sass-watcher*.

  Parameters
  ----------
  argv
    A custom argument list (mainly for testing).  When None the
    function uses ``sys.argv[1:]`` automatically.

  Returns
  -------
  argparse.Namespace
    • input        : Path to the entry stylesheet
    • command      : Optional shell command the input is piped through
    • output       : Optional output file (stdout when None)
    • root_dir     : Directory watched for new / removed files
    • include_path : Extra import search directories
    • extensions   : Relevant file extensions (None → defaults)
    • verbose      : Verbosity count (-v, -vv, -vvv)
  '''
  parser = argparse.ArgumentParser(
      prog='sass-watcher',
      usage='sass-watcher <input.scss> [options]',
      description='Watch a stylesheet and everything it imports; rebuild on change.',
  )

  parser.add_argument(
      'input',
      nargs='*',
      type=Path,
      help='Entry stylesheet to watch.',
  )

  parser.add_argument(
      '--command',
      '-c',
      action=_Once,
      message='EXTRA_COMMAND',
      default=None,
      help='Shell command that receives the input on stdin; its stdout is the output.',
  )
  parser.add_argument(
      '--output',
      '-o',
      action=_Once,
      message='EXTRA_OUTPUT_PATH',
      type=Path,
      default=None,
      help='Write the output here instead of stdout.',
  )
  parser.add_argument(
      '--root-dir',
      '-r',
      action=_Once,
      message='EXTRA_ROOT_DIR',
      type=Path,
      default=None,
      help='Directory to watch for new or removed files (default: current directory).',
  )
  parser.add_argument(
      '--include-path',
      '-I',
      action='append',
      type=Path,
      default=[],
      help='Additional directory to resolve imports from; may be repeated.',
  )
  parser.add_argument(
      '--extensions',
      '-e',
      type=_csv,
      default=None,
      metavar='EXT[,EXT...]',
      help='Comma-separated file extensions to consider (default: scss,sass,css).',
  )

  # verbosity
  parser.add_argument(
      '--verbose',
      '-v',
      action='count',
      default=0,
      help='Increase logging verbosity; repeat for more detail.',
  )
  parser.add_argument(
      '--version',
      '-V',
      action='version',
      version=__version__,
  )

  try:
    import argcomplete
    argcomplete.autocomplete(parser)
  except ImportError:
    pass

  if argv is None:
    argv = sys.argv[1:]
  if not argv:
    parser.print_help(sys.stderr)
    parser.exit(2)

  args = parser.parse_args(argv)
  if not args.input:
    parser.error(MESSAGES['NO_INPUT_PATH'])
  if len(args.input) > 1:
    parser.error(MESSAGES['EXTRA_POS_ARGS'])
  args.input = args.input[0]
  return args
