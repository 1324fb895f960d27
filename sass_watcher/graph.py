# graph.py
'''
Import-graph resolver for Sass / SCSS / CSS entry files.

Public call
-----------
    parse_file(entry, load_paths=(), extensions=DEFAULT_EXTENSIONS, strict=False) -> Graph
        • entry      : stylesheet the graph starts from
        • load_paths : extra directories searched after the importer's own
        • extensions : accepted file extensions, without the dot
        • strict     : raise ResolutionError on imports that cannot be found
Graph.index maps every reachable file (the entry included) to its Node.
'''

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import ResolutionError
from .log import get_logger

DEFAULT_EXTENSIONS: Tuple[str, ...] = ('scss', 'sass', 'css')

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# 1.  Import discovery
# ─────────────────────────────────────────────────────────────────────────────
# strings are matched first so that '//' inside them is not taken as a comment
_TOKEN = re.compile(
  r'''("(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')|(/\*.*?\*/)|(//[^\n]*)''',
  re.S,
)
_RULE = re.compile(r'@(import|use|forward)\s+([^;{}]*)')
_RULE_INDENTED = re.compile(r'^[ \t]*@(import|use|forward)[ \t]+(.*)$', re.M)
_ARG = re.compile(r"url\([^)]*\)|\"([^\"]*)\"|'([^']*)'")
_SKIP_PREFIXES = ('http://', 'https://', '//', 'url(', 'sass:')


def _strip_comments(src: str) -> str:
  def _sub(m: re.Match) -> str:
    if m.group(1) is not None:
      return m.group(1)
    if m.group(2) is not None:
      return '\n' * m.group(2).count('\n')   # keep line structure
    return ''
  return _TOKEN.sub(_sub, src)


def _quoted(args: str) -> List[str]:
  names: List[str] = []
  for m in _ARG.finditer(args):
    if m.group(1) is not None:
      names.append(m.group(1))
    elif m.group(2) is not None:
      names.append(m.group(2))
  return names


def import_names(src: str, indented: bool = False) -> List[str]:
  '''
  Return the import targets of *src* in source order.

  *indented* selects the whitespace syntax (``.sass``), where rules end at
  the line break and ``@import`` arguments may be unquoted.
  '''
  rule = _RULE_INDENTED if indented else _RULE
  names: List[str] = []
  for m in rule.finditer(_strip_comments(src)):
    kind, args = m.group(1), m.group(2).strip()
    found = _quoted(args)
    if not found and indented and kind == 'import' and 'url(' not in args:
      found = [a.strip() for a in args.split(',') if a.strip()]
    if kind != 'import':
      found = found[:1]            # @use 'x' as y / @forward 'x' show z
    names.extend(n for n in found if n and not n.startswith(_SKIP_PREFIXES))
  return names


# ─────────────────────────────────────────────────────────────────────────────
# 2.  Path resolution
# ─────────────────────────────────────────────────────────────────────────────
def _candidates(name: str, extensions: Sequence[str]) -> Iterator[Path]:
  '''Relative paths Sass would try for *name*, in order of preference.'''
  p = Path(name)
  parent, base = p.parent, p.name
  if p.suffix[1:] in extensions:
    yield p
    yield parent / ('_' + base)
    return
  for ext in extensions:
    yield parent / f'{base}.{ext}'
    yield parent / f'_{base}.{ext}'
  for ext in extensions:
    yield p / f'_index.{ext}'
    yield p / f'index.{ext}'


def resolve_import(
  name: str,
  importer_dir: Path,
  load_paths: Iterable[Path],
  extensions: Sequence[str],
) -> Optional[Path]:
  '''First existing file for *name*: importer's directory, then load paths.'''
  for base_dir in (importer_dir, *load_paths):
    for rel in _candidates(name, extensions):
      candidate = base_dir / rel
      if candidate.is_file():
        return candidate.resolve()
  return None


# ─────────────────────────────────────────────────────────────────────────────
# 3.  Graph
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class Node:
  imports: List[Path] = field(default_factory=list)
  imported_by: List[Path] = field(default_factory=list)
  modified: float = 0.0


@dataclass
class Graph:
  load_paths: Tuple[Path, ...] = ()
  extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
  strict: bool = False
  index: Dict[Path, Node] = field(default_factory=dict)

  def add_file(self, entry: Path) -> None:
    '''Walk *entry* and everything it imports; each file is read once.'''
    pending = [entry]
    while pending:
      path = pending.pop()
      if path in self.index:
        continue
      try:
        src = path.read_text(encoding='utf-8')
        modified = path.stat().st_mtime
      except (OSError, UnicodeDecodeError) as exc:
        raise ResolutionError(f'Cannot read "{path}": {exc}', path) from exc

      node = self.index[path] = Node(modified=modified)
      for name in import_names(src, indented=path.suffix == '.sass'):
        dep = resolve_import(name, path.parent, self.load_paths, self.extensions)
        if dep is None:
          if self.strict:
            raise ResolutionError(f'Cannot resolve "{name}" imported from "{path}"', path)
          log.debug('unresolved_import', name=name, importer=str(path))
          continue
        if dep not in node.imports:
          node.imports.append(dep)
        pending.append(dep)

    for path, node in self.index.items():
      for dep in node.imports:
        if path not in self.index[dep].imported_by:
          self.index[dep].imported_by.append(path)


def parse_file(
  entry: str | Path,
  load_paths: Iterable[str | Path] = (),
  extensions: Iterable[str] = DEFAULT_EXTENSIONS,
  strict: bool = False,
) -> Graph:
  path = Path(entry)
  if not path.is_file():
    raise ResolutionError(f'Entry file "{path}" does not exist', path)
  graph = Graph(
    load_paths=tuple(Path(p).resolve() for p in load_paths),
    extensions=tuple(e.lstrip('.') for e in extensions),
    strict=strict,
  )
  graph.add_file(path.resolve())
  return graph
