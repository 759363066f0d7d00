from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from pathlib import Path


def _flag(value: str) -> bool:
    return value.strip().lower() not in ('0', 'false', 'no', 'off', '')


@dataclass(frozen=True)
class Settings:
    config_path: Path = Path('./config.yaml')
    scripts_path: Path = Path('/app/scripts')
    browse_root: Path = Path('/app/scripts')
    caddyfile_path: Path = Path('/app/Caddyfile')
    caddy_admin_url: str = 'http://script-server:2019/load'
    reload_timeout: float = 5.0
    reload_enabled: bool = True
    secret_key: str = ''
    host: str = '0.0.0.0'
    port: int = 8080
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ=None) -> 'Settings':
        env = os.environ if environ is None else environ
        scripts_path = Path(env.get('SCRIPTS_PATH') or '/app/scripts')
        return cls(
            config_path=Path(env.get('CONFIG_PATH') or './config.yaml'),
            scripts_path=scripts_path,
            browse_root=Path(env.get('BROWSE_ROOT') or scripts_path),
            caddyfile_path=Path(env.get('CADDYFILE_PATH') or '/app/Caddyfile'),
            caddy_admin_url=env.get('CADDY_ADMIN_URL') or 'http://script-server:2019/load',
            reload_timeout=float(env.get('CADDY_RELOAD_TIMEOUT') or 5),
            reload_enabled=_flag(env.get('CADDY_RELOAD', '1')),
            secret_key=env.get('SECRET_KEY') or secrets.token_hex(32),
            host=env.get('HOST') or '0.0.0.0',
            port=int(env.get('PORT') or 8080),
            log_level=(env.get('LOG_LEVEL') or 'INFO').upper(),
        )
