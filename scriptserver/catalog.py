"""Catalog Store: the YAML file holding admin credentials and script entries."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from scriptserver.errors import CatalogLoadError, PersistenceError, ValidationError
from scriptserver.fsutil import atomic_write_text
from scriptserver.models import AdminCredentials, Catalog, ScriptEntry

log = logging.getLogger(__name__)


class CatalogStore:
    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Catalog:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise CatalogLoadError(f'Failed to read config file: {self.path} does not exist') from None
        except (OSError, yaml.YAMLError) as e:
            raise CatalogLoadError(f'Failed to parse config file {self.path}: {e}') from e

        if not isinstance(data, dict):
            raise CatalogLoadError(f'Config file {self.path} must be a mapping')
        admin = data.get('admin') or {}
        scripts = data.get('scripts') or []
        if not isinstance(admin, dict) or not isinstance(scripts, list):
            raise CatalogLoadError(f"Config file {self.path} must have an 'admin' mapping and a 'scripts' list")

        entries = []
        seen = set()
        for item in scripts:
            try:
                entry = ScriptEntry.from_dict(item)
            except (KeyError, TypeError, AttributeError) as e:
                raise CatalogLoadError(f'Malformed script entry in {self.path}: {item!r}') from e
            except ValidationError as e:
                raise CatalogLoadError(f'Malformed script entry in {self.path}: {e}') from e
            if entry.name in seen:
                raise CatalogLoadError(f"Duplicate script name '{entry.name}' in {self.path}")
            seen.add(entry.name)
            entries.append(entry)

        catalog = Catalog(
            admin=AdminCredentials(
                username=str(admin.get('username') or ''),
                password_hash=str(admin.get('password_hash') or ''),
            ),
            entries=tuple(entries),
        )
        log.info('Loaded %d scripts from %s', len(catalog.entries), self.path)
        return catalog

    def save(self, catalog: Catalog) -> None:
        try:
            text = yaml.safe_dump(self.dump(catalog), sort_keys=False, allow_unicode=True)
            atomic_write_text(self.path, text)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f'Failed to save configuration: {e}') from e
        log.debug('Saved %d scripts to %s', len(catalog.entries), self.path)

    @staticmethod
    def dump(catalog: Catalog) -> Dict[str, Any]:
        return {
            'admin': {
                'username': catalog.admin.username,
                'password_hash': catalog.admin.password_hash,
            },
            'scripts': [entry.to_dict() for entry in catalog.entries],
        }
