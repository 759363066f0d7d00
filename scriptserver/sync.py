"""Catalog Synchronizer.

Keeps the catalog file, the published script links, the Caddyfile redirect
blocks and the landing page in agreement. Every mutation runs under one lock
and the in-memory catalog is only replaced after the catalog file has been
written, so readers never see a catalog that was not persisted.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from scriptserver.errors import ConflictError, MaterializeError, NotFoundError, ScriptServerError, ValidationError
from scriptserver.models import (
    DEFAULT_ICON,
    UNSET,
    Catalog,
    Kind,
    NewScript,
    ScriptEntry,
    ScriptPatch,
    normalize_name,
    validate_redirect_url,
)

log = logging.getLogger(__name__)


@dataclass
class Outcome:
    """Result of one synchronizer call. `error` is set instead of raising."""

    entry: Optional[ScriptEntry] = None
    content: Optional[str] = None
    error: Optional[ScriptServerError] = None
    warnings: List[str] = field(default_factory=list)
    reloaded: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {'error': self.error.message}
        data: Dict[str, Any] = self.entry.to_dict() if self.entry else {}
        if self.content is not None:
            data['content'] = self.content
        if self.warnings:
            data['warnings'] = list(self.warnings)
        return data


class Synchronizer:
    def __init__(self, store, catalog: Catalog, materializer, routes, reloader, landing):
        self.store = store
        self.materializer = materializer
        self.routes = routes
        self.reloader = reloader
        self.landing = landing
        self._catalog = catalog
        self._lock = threading.Lock()

    def snapshot(self) -> Catalog:
        return self._catalog

    @contextmanager
    def _operation(self, what: str, locked: bool = True) -> Iterator[Outcome]:
        outcome = Outcome()
        try:
            if locked:
                with self._lock:
                    yield outcome
            else:
                yield outcome
        except ScriptServerError as e:
            level = logging.WARNING if e.status < 500 else logging.ERROR
            log.log(level, '%s failed: %s', what, e.message)
            outcome.error = e

    # -- mutations -------------------------------------------------------

    def create(self, data: Dict[str, Any]) -> Outcome:
        with self._operation('create') as outcome:
            outcome.entry = self._create(data, outcome)
        return outcome

    def _create(self, data: Dict[str, Any], outcome: Outcome) -> ScriptEntry:
        new = NewScript.from_json(data)
        name = normalize_name(new.name)
        current = self._catalog
        if name in current:
            raise ConflictError(f"Script '{name}' already exists. Please choose a different name.")

        caddy_text = None
        if new.kind is Kind.LOCAL:
            target = self.materializer.materialize(name, new.name, new.description, new.script_path)
        else:
            target = new.redirect_url
            caddy_text = self.routes.upsert(name, target)

        entry = ScriptEntry(name=name, description=new.description, icon=new.icon, kind=new.kind, target=target)
        self._commit(current.with_entry(entry))
        log.info('Script added to config successfully: %s (%s)', name, entry.kind.value)

        self._refresh_landing(outcome)
        if caddy_text is not None:
            self._reload(caddy_text, outcome)
        return entry

    def update(self, name: str, patch: ScriptPatch) -> Outcome:
        with self._operation(f'update {name}') as outcome:
            outcome.entry = self._update(name, patch, outcome)
        return outcome

    def _update(self, name: str, patch: ScriptPatch, outcome: Outcome) -> ScriptEntry:
        current = self._catalog
        old = current.get(name)
        if old is None:
            raise NotFoundError('Script not found')

        kind = old.kind if patch.kind is UNSET else patch.kind
        if patch.description is not UNSET and not patch.description:
            raise ValidationError('Description cannot be empty')
        description = old.description if patch.description is UNSET else patch.description
        icon = old.icon if patch.icon is UNSET else (patch.icon or DEFAULT_ICON)

        # source: None keeps the current local file, "" generates a default one
        source = None
        if kind is Kind.REDIRECT:
            if patch.redirect_url is not UNSET:
                target = validate_redirect_url(patch.redirect_url)
            elif old.is_redirect:
                target = old.target
            else:
                raise ValidationError('Redirect URL is required for redirect type scripts')
        elif patch.script_path:
            target = str(self.materializer.check_source(patch.script_path))
            if old.is_redirect or target != old.target:
                source = target
        elif old.is_redirect or patch.script_path is not UNSET:
            # cleared, or coming back from a redirect: fall back to a generated script
            target = str(self.materializer.generated_path(name))
            if old.is_redirect or target != old.target:
                source = ''
        else:
            target = old.target

        entry = ScriptEntry(name=name, description=description, icon=icon, kind=kind, target=target)
        if entry == old:
            return old
        self._commit(current.with_replaced(entry))
        log.info('Updated script %s', name)

        caddy_text = None
        if old.is_redirect and not entry.is_redirect:
            caddy_text = self._best_effort(outcome, self.routes.remove, name)
        elif not old.is_redirect and (entry.is_redirect or source is not None):
            self._best_effort(outcome, self.materializer.teardown, name, old.target, source)

        if entry.is_redirect and (not old.is_redirect or entry.target != old.target):
            caddy_text = self._best_effort(outcome, self.routes.upsert, name, entry.target)
        elif source is not None:
            # only the normalized name is stored, so a regenerated script greets with it
            self._best_effort(outcome, self.materializer.materialize, name, name, entry.description, source)

        self._refresh_landing(outcome)
        if caddy_text is not None:
            self._reload(caddy_text, outcome)
        return entry

    def delete(self, name: str) -> Outcome:
        with self._operation(f'delete {name}') as outcome:
            outcome.entry = self._delete(name, outcome)
        return outcome

    def _delete(self, name: str, outcome: Outcome) -> ScriptEntry:
        current = self._catalog
        old = current.get(name)
        if old is None:
            raise NotFoundError('Script not found')

        self._commit(current.without(name))
        log.info('Removed script %s from config', name)

        caddy_text = None
        if old.is_redirect:
            caddy_text = self._best_effort(outcome, self.routes.remove, name)
        else:
            self._best_effort(outcome, self.materializer.teardown, name, old.target)

        self._refresh_landing(outcome)
        if caddy_text is not None:
            self._reload(caddy_text, outcome)
        return old

    def write_content(self, name: str, content: str) -> Outcome:
        with self._operation(f'write content of {name}') as outcome:
            entry = self._local_entry(name)
            self.materializer.write_content(entry.target, content)
            log.info('Script content updated for %s', name)
            outcome.entry = entry
        return outcome

    def regenerate_landing(self) -> Outcome:
        with self._operation('regenerate index page') as outcome:
            try:
                self.landing.write(self._catalog.entries)
            except OSError as e:
                raise MaterializeError(f'Failed to update index page: {e}') from e
        return outcome

    # -- reads -----------------------------------------------------------

    def read_content(self, name: str) -> Outcome:
        with self._operation(f'read content of {name}', locked=False) as outcome:
            entry = self._local_entry(name)
            outcome.entry = entry
            outcome.content = self.materializer.read_content(entry.target)
        return outcome

    def reconcile(self) -> Outcome:
        """Startup check: rewrite the landing page and report drift without fixing it."""
        with self._operation('reconcile') as outcome:
            catalog = self._catalog
            try:
                routed = set(self.routes.names())
            except MaterializeError as e:
                outcome.warnings.append(e.message)
                routed = set()
            for entry in catalog.entries:
                if entry.is_redirect and entry.name not in routed:
                    outcome.warnings.append(f"Redirect '{entry.name}' has no route block in the Caddyfile")
                elif not entry.is_redirect and not self.materializer.exists(entry.name):
                    outcome.warnings.append(f"Script '{entry.name}' has no readable file at its published path")
            redirects = {e.name for e in catalog.entries if e.is_redirect}
            for orphan in sorted(routed - redirects):
                outcome.warnings.append(f"Route block '/{orphan}' has no catalog entry")
            for warning in outcome.warnings:
                log.warning(warning)
            self._refresh_landing(outcome)
        return outcome

    # -- helpers ---------------------------------------------------------

    def _local_entry(self, name: str) -> ScriptEntry:
        entry = self._catalog.get(name)
        if entry is None or entry.is_redirect:
            raise NotFoundError('Script not found or not local')
        return entry

    def _commit(self, catalog: Catalog) -> None:
        self.store.save(catalog)
        self._catalog = catalog

    def _refresh_landing(self, outcome: Outcome) -> None:
        try:
            self.landing.write(self._catalog.entries)
        except OSError as e:
            log.warning('Failed to auto-update index page: %s', e)
            outcome.warnings.append(f'Failed to update index page: {e}')

    def _reload(self, text: str, outcome: Outcome) -> None:
        result = self.reloader.reload(text)
        outcome.reloaded = True
        if not result.ok:
            outcome.warnings.append(result.message)

    @staticmethod
    def _best_effort(outcome: Outcome, fn, *args):
        try:
            return fn(*args)
        except ScriptServerError as e:
            log.warning('%s', e.message)
            outcome.warnings.append(e.message)
            return None

