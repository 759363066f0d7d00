"""Landing Page Generator.

`render_landing` is a pure function of the entries it is given, so two renders
of the same catalog are byte-identical.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from jinja2 import Environment, PackageLoader, select_autoescape

from scriptserver.fsutil import atomic_write_text
from scriptserver.models import ScriptEntry

log = logging.getLogger(__name__)

INDEX_NAME = 'index.html'

_env = Environment(
    loader=PackageLoader('scriptserver', 'templates'),
    autoescape=select_autoescape(['html']),
    keep_trailing_newline=True,
)


def render_landing(entries: Iterable[ScriptEntry]) -> str:
    return _env.get_template('landing.html').render(scripts=list(entries))


class LandingPage:
    def __init__(self, scripts_root):
        self.path = Path(scripts_root) / INDEX_NAME

    def write(self, entries: Iterable[ScriptEntry]) -> Path:
        entries = list(entries)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(self.path, render_landing(entries), mode=0o644)
        log.info('Index page auto-updated with %d scripts', len(entries))
        return self.path

    def read(self) -> str:
        with open(self.path, 'r', encoding='utf-8') as f:
            return f.read()
