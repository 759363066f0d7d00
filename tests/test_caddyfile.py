import pytest

from scriptserver.caddyfile import ANCHOR, CaddyConfig, RouteBlock, RouteEditor
from scriptserver.errors import MaterializeError, ValidationError

from conftest import CADDYFILE


@pytest.fixture
def editor(tmp_path):
    path = tmp_path / 'Caddyfile'
    path.write_text(CADDYFILE, encoding='utf-8')
    return RouteEditor(path)


def test_parse_serialize_is_identity():
    assert CaddyConfig.parse(CADDYFILE).serialize() == CADDYFILE


def test_parse_serialize_identity_with_blocks(editor):
    text = editor.upsert('docs', 'https://example.com/x')
    text = editor.upsert('wiki', 'https://wiki.example.com')
    assert CaddyConfig.parse(text).serialize() == text


def test_upsert_inserts_before_anchor(editor):
    text = editor.upsert('docs', 'https://example.com/x')
    assert '\thandle /docs {\n\t\tredir https://example.com/x 302\n\t}\n' in text
    assert text.index('\thandle /docs {') < text.index(ANCHOR)
    assert editor.path.read_text(encoding='utf-8') == text


def test_upsert_replaces_existing_block(editor):
    editor.upsert('docs', 'https://example.com/x')
    text = editor.upsert('docs', 'https://example.com/y')
    assert text.count('handle /docs {') == 1
    assert 'https://example.com/x' not in text
    assert 'redir https://example.com/y 302' in text


def test_remove_restores_original(editor):
    editor.upsert('docs', 'https://example.com/x')
    assert editor.remove('docs') is not None
    assert editor.path.read_text(encoding='utf-8') == CADDYFILE


def test_remove_missing_is_noop(editor):
    before = editor.path.stat().st_mtime_ns
    assert editor.remove('ghost') is None
    assert editor.path.read_text(encoding='utf-8') == CADDYFILE
    assert editor.path.stat().st_mtime_ns == before


def test_unmanaged_blocks_are_kept(tmp_path):
    text = CADDYFILE.replace(
        '\t# Handle other',
        '\thandle /old {\n\t\tredir https://legacy.example.com 301\n\t}\n\n\t# Handle other',
    )
    path = tmp_path / 'Caddyfile'
    path.write_text(text, encoding='utf-8')
    editor = RouteEditor(path)
    assert editor.names() == []
    out = editor.upsert('docs', 'https://example.com')
    assert '\thandle /old {\n\t\tredir https://legacy.example.com 301\n\t}' in out
    assert "\thandle /health {\n\t\trespond \"OK\" 200\n\t}" in out


def test_brace_in_target_does_not_corrupt_neighbours(editor):
    editor.upsert('odd', 'https://example.com/}{')
    editor.upsert('docs', 'https://example.com/x')
    editor.remove('odd')
    config = editor.read()
    assert config.routes == [RouteBlock('docs', 'https://example.com/x')]
    assert '}{' not in editor.path.read_text(encoding='utf-8')


def test_rejects_multiline_target(editor):
    with pytest.raises(ValidationError):
        editor.upsert('docs', 'https://example.com/x 302\n\t}\n\thandle /evil {')
    assert editor.path.read_text(encoding='utf-8') == CADDYFILE


def test_missing_anchor_appends(tmp_path):
    path = tmp_path / 'Caddyfile'
    path.write_text(':80 {\n\tfile_server\n}\n', encoding='utf-8')
    text = RouteEditor(path).upsert('docs', 'https://example.com')
    assert text.startswith(':80 {\n\tfile_server\n}\n')
    assert '\thandle /docs {\n\t\tredir https://example.com 302\n\t}\n' in text


def test_missing_file_raises(tmp_path):
    with pytest.raises(MaterializeError):
        RouteEditor(tmp_path / 'missing').upsert('docs', 'https://example.com')


def test_names_in_file_order(editor):
    editor.upsert('b', 'https://b.example.com')
    editor.upsert('a', 'https://a.example.com')
    editor.upsert('b', 'https://b2.example.com')
    assert editor.names() == ['a', 'b']
