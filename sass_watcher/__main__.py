# __main__.py
import asyncio

from .errors import SassWatcherError
from .log import configure_logging, get_logger
from .runner import Rebuilder
from .watch_argparse import parse_argv
from .watcher import Options, Watcher

log = get_logger('sass-watcher')


async def _serve(args) -> None:
  opts = Options(
    include_paths=args.include_path,
    root_dir=args.root_dir,
    verbosity=args.verbose,
    include_extensions=args.extensions,
  )
  rebuild = Rebuilder(args.input, args.command, args.output)
  with Watcher(args.input, opts) as watcher:
    watcher.on('init', rebuild).on('update', rebuild)
    watcher.on('error', lambda exc: log.error('Cannot resolve imports', error=str(exc)))
    watcher.start()
    await asyncio.Event().wait()      # until interrupted


def main(argv=None) -> int:
  args = parse_argv(argv)
  configure_logging(args.verbose)
  try:
    asyncio.run(_serve(args))
  except SassWatcherError as exc:
    log.error(str(exc))
    return 1
  except KeyboardInterrupt:
    pass
  return 0


if __name__ == '__main__':
  raise SystemExit(main())
