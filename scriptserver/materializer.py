"""Script Materializer: keeps a servable file behind every local entry.

Caddy serves ``scripts_root/<name>``. For generated scripts that path is a
symlink into ``scripts_root/<name>_dir/<name>.sh``; for scripts the operator
picked with the file browser it links straight to the chosen file.
"""
from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from scriptserver.errors import MaterializeError, NotFoundError, ValidationError
from scriptserver.fsutil import atomic_write_text

log = logging.getLogger(__name__)

SCRIPT_MODE = 0o755
BROWSABLE_SUFFIXES = ('.sh', '.bash', '.py')

DEFAULT_SCRIPT = """#!/bin/bash

# {description}
# Generated on {stamp}

echo "Hello from {display_name} script!"
echo "Edit this script through the admin panel."
"""


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def _is_executable(path: Path) -> bool:
    try:
        return bool(path.stat().st_mode & 0o111)
    except OSError:
        return False


class Materializer:
    def __init__(self, scripts_root, browse_root=None):
        self.scripts_root = Path(scripts_root)
        self.browse_root = Path(browse_root or scripts_root)

    def route_path(self, name: str) -> Path:
        return self.scripts_root / name

    def generated_dir(self, name: str) -> Path:
        return self.scripts_root / f'{name}_dir'

    def generated_path(self, name: str) -> Path:
        return self.generated_dir(name) / f'{name}.sh'

    def materialize(self, name: str, display_name: str, description: str, source: str = '') -> str:
        """Back `name` with a file and return the target path recorded in the catalog."""
        if source:
            return self.link_existing(name, source)
        return self.create_default(name, display_name, description)

    def create_default(self, name: str, display_name: str, description: str, now: Optional[datetime] = None) -> str:
        script_file = self.generated_path(name)
        content = DEFAULT_SCRIPT.format(
            description=description,
            stamp=(now or datetime.now()).strftime('%Y-%m-%d %H:%M:%S'),
            display_name=display_name,
        )
        self._check_free(name)
        gen_dir = script_file.parent
        created = not gen_dir.exists()
        try:
            try:
                gen_dir.mkdir(parents=True, exist_ok=True)
                atomic_write_text(script_file, content, mode=SCRIPT_MODE)
            except OSError as e:
                raise MaterializeError(f'Failed to create script file: {e}') from e
            self._link(name, script_file)
        except MaterializeError:
            # nothing is left behind when this call made the directory
            if created and gen_dir.is_dir():
                shutil.rmtree(gen_dir)
            raise
        log.info('Created new script and symlink: %s -> %s', self.route_path(name), script_file)
        return str(script_file)

    def link_existing(self, name: str, source: str) -> str:
        resolved = self.check_source(source)
        if resolved == self.route_path(name).resolve():
            # The chosen file already sits at the published path.
            return str(resolved)
        self._link(name, resolved)
        log.info('Created symlink: %s -> %s', self.route_path(name), resolved)
        return str(resolved)

    def check_source(self, source: str) -> Path:
        root = self.browse_root.resolve()
        resolved = Path(source).resolve()
        if not _is_within(resolved, root):
            raise ValidationError(f'Script path must be inside {self.browse_root}')
        if not resolved.is_file():
            raise ValidationError(f'Script file not found: {source}')
        return resolved

    def _check_free(self, name: str) -> None:
        link = self.route_path(name)
        if not link.is_symlink() and link.exists():
            raise MaterializeError(f'Failed to link script file: {link} already exists')

    def _link(self, name: str, target: Path) -> None:
        link = self.route_path(name)
        self._check_free(name)
        try:
            if link.is_symlink():
                link.unlink()
            self.scripts_root.mkdir(parents=True, exist_ok=True)
            os.symlink(target, link)
        except OSError as e:
            raise MaterializeError(f'Failed to link script file: {e}') from e

    def teardown(self, name: str, target: str, keep: Optional[str] = None) -> None:
        """Remove the published link and any directory this class generated.

        A file the operator selected through the browser is left alone. The
        generated directory also stays when `keep` points inside it.
        """
        link = self.route_path(name)
        gen_dir = self.generated_dir(name)
        if keep and _is_within(Path(keep).resolve(), gen_dir.resolve()):
            target = ''
        try:
            if link.is_symlink():
                link.unlink()
            if target and _is_within(Path(target), gen_dir) and gen_dir.is_dir():
                shutil.rmtree(gen_dir)
        except OSError as e:
            raise MaterializeError(f"Failed to remove script files for '{name}': {e}") from e
        log.info('Removed script files for %s', name)

    def exists(self, name: str) -> bool:
        path = self.route_path(name)
        return path.is_file() and os.access(path, os.R_OK)

    def read_content(self, target: str) -> str:
        try:
            with open(target, 'r', encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            raise NotFoundError('Script file not found') from None
        except OSError as e:
            raise MaterializeError(f'Failed to read script content: {e}') from e

    def write_content(self, target: str, content: str) -> None:
        path = Path(target)
        if not path.is_file():
            raise NotFoundError('Script file not found')
        try:
            atomic_write_text(path.resolve(), content, mode=SCRIPT_MODE)
        except OSError as e:
            raise MaterializeError(f'Failed to save script content: {e}') from e

    def browse(self, path: Optional[str] = None) -> Dict[str, Any]:
        root = self.browse_root.resolve()
        current = Path(path).resolve() if path else root
        if not _is_within(current, root):
            current = root
        try:
            children = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise MaterializeError(f'Failed to read directory: {e}') from e

        dirs: List[Dict[str, Any]] = []
        files: List[Dict[str, Any]] = []
        if current != root:
            dirs.append({'name': '..', 'path': str(current.parent), 'type': 'directory', 'isParent': True})
        for child in children:
            item = {'name': child.name, 'path': str(child)}
            if child.is_dir():
                item['type'] = 'directory'
                dirs.append(item)
            elif child.name.endswith(BROWSABLE_SUFFIXES) or _is_executable(child):
                item['type'] = 'file'
                files.append(item)
        return {'currentPath': str(current), 'items': dirs + files}
