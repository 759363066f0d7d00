"""Route Block Editor for the shared Caddyfile.

The file is parsed into a small document model instead of being patched with
string searches. Redirect entries live as blocks of exactly this shape::

    \thandle /<name> {
    \t\tredir <target> 302
    \t}

Everything else in the file is kept verbatim. Managed blocks are always
written back immediately before the catch-all anchor comment, in the order
they were last written.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from scriptserver.errors import MaterializeError
from scriptserver.fsutil import atomic_write_text
from scriptserver.models import NAME_RE, validate_redirect_url

log = logging.getLogger(__name__)

ANCHOR = '# Handle other script requests with clean URLs'
REDIRECT_STATUS = 302

_OPEN_RE = re.compile(r'^\thandle /([a-z0-9_]+) \{$')
_REDIR_RE = re.compile(r'^\t\tredir (\S+) 302$')
_CLOSE = '\t}'


@dataclass(frozen=True)
class RouteBlock:
    name: str
    target: str

    def render(self) -> List[str]:
        return [
            f'\thandle /{self.name} {{',
            f'\t\tredir {self.target} {REDIRECT_STATUS}',
            _CLOSE,
            '',
        ]


@dataclass
class CaddyConfig:
    head: List[str] = field(default_factory=list)
    routes: List[RouteBlock] = field(default_factory=list)
    tail: List[str] = field(default_factory=list)
    trailing_newline: bool = True

    @classmethod
    def parse(cls, text: str) -> 'CaddyConfig':
        lines = text.split('\n')
        trailing_newline = text.endswith('\n') or not text
        if trailing_newline:
            lines.pop()

        config = cls(trailing_newline=trailing_newline)
        i = 0
        while i < len(lines):
            line = lines[i]
            if line.strip() == ANCHOR:
                config.tail = lines[i:]
                break
            block = _match_block(lines, i)
            if block is not None:
                config._put(block)
                i += 3
                if i < len(lines) and lines[i] == '':
                    i += 1
                continue
            config.head.append(line)
            i += 1
        return config

    def _put(self, block: RouteBlock) -> None:
        self.routes = [r for r in self.routes if r.name != block.name]
        self.routes.append(block)

    def get(self, name: str) -> Optional[RouteBlock]:
        for route in self.routes:
            if route.name == name:
                return route
        return None

    def upsert(self, name: str, target: str) -> None:
        self._put(RouteBlock(name, target))

    def remove(self, name: str) -> bool:
        before = len(self.routes)
        self.routes = [r for r in self.routes if r.name != name]
        return len(self.routes) != before

    def serialize(self) -> str:
        lines = list(self.head)
        for route in self.routes:
            lines.extend(route.render())
        lines.extend(self.tail)
        text = '\n'.join(lines)
        if lines and (self.trailing_newline or self.routes):
            text += '\n'
        return text


def _match_block(lines: List[str], i: int) -> Optional[RouteBlock]:
    if i + 2 >= len(lines):
        return None
    opener = _OPEN_RE.match(lines[i])
    redir = _REDIR_RE.match(lines[i + 1])
    if not opener or not redir or lines[i + 2] != _CLOSE:
        return None
    return RouteBlock(opener.group(1), redir.group(1))


class RouteEditor:
    """Reads, edits and rewrites the Caddyfile one whole document at a time."""

    def __init__(self, path):
        self.path = Path(path)

    def read(self) -> CaddyConfig:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return CaddyConfig.parse(f.read())
        except OSError as e:
            raise MaterializeError(f'Failed to read Caddyfile: {e}') from e

    def write(self, config: CaddyConfig) -> str:
        text = config.serialize()
        try:
            atomic_write_text(self.path, text)
        except OSError as e:
            raise MaterializeError(f'Failed to write Caddyfile: {e}') from e
        return text

    def names(self) -> List[str]:
        return [route.name for route in self.read().routes]

    def upsert(self, name: str, target: str) -> str:
        if not NAME_RE.match(name):
            raise MaterializeError(f"Refusing to write route for invalid name '{name}'")
        target = validate_redirect_url(target)
        config = self.read()
        config.remove(name)
        config.upsert(name, target)
        if not config.tail:
            log.warning('Anchor %r not found in %s, appending redirect for %s', ANCHOR, self.path, name)
        text = self.write(config)
        log.info('Added redirect for %s -> %s', name, target)
        return text

    def remove(self, name: str) -> Optional[str]:
        config = self.read()
        if not config.remove(name):
            return None
        text = self.write(config)
        log.info('Removed redirect for %s', name)
        return text
