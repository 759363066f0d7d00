from pathlib import Path

import bcrypt
import pytest

from scriptserver.caddyfile import RouteEditor
from scriptserver.catalog import CatalogStore
from scriptserver.config import Settings
from scriptserver.landing import LandingPage
from scriptserver.materializer import Materializer
from scriptserver.models import AdminCredentials, Catalog
from scriptserver.reload import ReloadResult
from scriptserver.sync import Synchronizer
from scriptserver.web import create_app

CADDYFILE = """{
\tadmin 0.0.0.0:2019
}

:80 {
\troot * /srv/scripts

\thandle /health {
\t\trespond "OK" 200
\t}

\t# Handle other script requests with clean URLs
\thandle {
\t\tfile_server
\t}
}
"""

ADMIN_PASSWORD = 'hunter2'


class FakeReloader:
    def __init__(self, ok=True):
        self.ok = ok
        self.calls = []

    def reload(self, text):
        self.calls.append(text)
        if self.ok:
            return ReloadResult(True)
        return ReloadResult(False, 'Caddy reload failed: connection refused')


@pytest.fixture(scope='session')
def password_hash():
    # low cost keeps the suite fast
    return bcrypt.hashpw(ADMIN_PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()


@pytest.fixture
def settings(tmp_path: Path, password_hash) -> Settings:
    scripts = tmp_path / 'scripts'
    scripts.mkdir()
    caddyfile = tmp_path / 'Caddyfile'
    caddyfile.write_text(CADDYFILE, encoding='utf-8')
    config = tmp_path / 'config.yaml'
    CatalogStore(config).save(Catalog(admin=AdminCredentials('admin', password_hash)))
    return Settings(
        config_path=config,
        scripts_path=scripts,
        browse_root=scripts,
        caddyfile_path=caddyfile,
        reload_enabled=False,
        secret_key='test-secret',
    )


@pytest.fixture
def reloader():
    return FakeReloader()


@pytest.fixture
def sync(settings: Settings, reloader) -> Synchronizer:
    store = CatalogStore(settings.config_path)
    return Synchronizer(
        store=store,
        catalog=store.load(),
        materializer=Materializer(settings.scripts_path, settings.browse_root),
        routes=RouteEditor(settings.caddyfile_path),
        reloader=reloader,
        landing=LandingPage(settings.scripts_path),
    )


@pytest.fixture
def client(settings, sync):
    app = create_app(settings, sync)
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def admin_client(client):
    resp = client.post('/login', data={'username': 'admin', 'password': ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client
