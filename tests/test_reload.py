import requests

from scriptserver.reload import CONTENT_TYPE, CaddyReloader, NullReloader


class FakeResponse:
    def __init__(self, status_code, text='', reason=''):
        self.status_code = status_code
        self.text = text
        self.reason = reason


def test_reload_posts_caddyfile(monkeypatch):
    calls = []

    def fake_post(url, data=None, headers=None, timeout=None):
        calls.append((url, data, headers, timeout))
        return FakeResponse(200)

    monkeypatch.setattr('scriptserver.reload.requests.post', fake_post)
    result = CaddyReloader('http://caddy:2019/load', timeout=3).reload(':80 {\n}\n')
    assert result.ok
    url, data, headers, timeout = calls[0]
    assert url == 'http://caddy:2019/load'
    assert data == b':80 {\n}\n'
    assert headers == {'Content-Type': CONTENT_TYPE}
    assert timeout == 3


def test_reload_bad_status_is_reported(monkeypatch):
    monkeypatch.setattr(
        'scriptserver.reload.requests.post',
        lambda *a, **k: FakeResponse(400, 'adapting config', 'Bad Request'),
    )
    result = CaddyReloader('http://caddy:2019/load').reload('x')
    assert not result.ok
    assert '400' in result.message


def test_reload_network_error_is_reported(monkeypatch):
    def boom(*a, **k):
        raise requests.ConnectionError('connection refused')

    monkeypatch.setattr('scriptserver.reload.requests.post', boom)
    result = CaddyReloader('http://caddy:2019/load').reload('x')
    assert not result.ok
    assert 'connection refused' in result.message


def test_reload_timeout_is_reported(monkeypatch):
    def slow(*a, **k):
        raise requests.Timeout('read timed out')

    monkeypatch.setattr('scriptserver.reload.requests.post', slow)
    assert not CaddyReloader('http://caddy:2019/load', timeout=0.1).reload('x').ok


def test_null_reloader():
    assert NullReloader().reload('x').ok
