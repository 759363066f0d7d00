"""Proxy Reload Client: pushes the Caddyfile to Caddy's admin API."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

log = logging.getLogger(__name__)

CONTENT_TYPE = 'text/caddyfile'


@dataclass(frozen=True)
class ReloadResult:
    ok: bool
    message: str = ''


class CaddyReloader:
    """Best-effort live reload.

    The Caddyfile on disk is already correct when this runs, so a failed call
    only delays the change until Caddy's next restart. Failures are logged
    and returned, never raised.
    """

    def __init__(self, admin_url: str, timeout: float = 5.0):
        self.admin_url = admin_url
        self.timeout = timeout

    def reload(self, text: str) -> ReloadResult:
        try:
            resp = requests.post(
                self.admin_url,
                data=text.encode('utf-8'),
                headers={'Content-Type': CONTENT_TYPE},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.warning('Failed to reload Caddy: %s', e)
            return ReloadResult(False, f'Caddy reload failed: {e}')
        if resp.status_code >= 300:
            log.warning('Caddy reload failed: %s %s', resp.status_code, resp.text[:200])
            return ReloadResult(False, f'Caddy reload failed: {resp.status_code} {resp.reason}')
        log.info('Caddy reloaded')
        return ReloadResult(True)


class NullReloader:
    """Used when CADDY_RELOAD=0; changes apply on the proxy's next restart."""

    def reload(self, text: str) -> ReloadResult:
        log.info('Caddy reload disabled, skipping')
        return ReloadResult(True, 'reload disabled')
