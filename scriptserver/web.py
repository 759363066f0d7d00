"""Flask surface: public script routes, session login and the admin JSON API.

The handlers only translate HTTP to Synchronizer calls; all catalog state
changes go through the synchronizer.
"""
from __future__ import annotations

import logging
from functools import wraps

from flask import Flask, Response, jsonify, redirect, request, send_from_directory, session
from werkzeug.exceptions import NotFound

from scriptserver.auth import check_password
from scriptserver.caddyfile import RouteEditor
from scriptserver.catalog import CatalogStore
from scriptserver.config import Settings
from scriptserver.errors import ScriptServerError, ValidationError
from scriptserver.landing import LandingPage, render_landing
from scriptserver.materializer import Materializer
from scriptserver.models import ScriptPatch
from scriptserver.reload import CaddyReloader, NullReloader
from scriptserver.sync import Outcome, Synchronizer

log = logging.getLogger(__name__)


def build_synchronizer(settings: Settings) -> Synchronizer:
    """Load the catalog and wire up its collaborators. Raises CatalogLoadError."""
    store = CatalogStore(settings.config_path)
    catalog = store.load()
    if settings.reload_enabled:
        reloader = CaddyReloader(settings.caddy_admin_url, timeout=settings.reload_timeout)
    else:
        reloader = NullReloader()
    return Synchronizer(
        store=store,
        catalog=catalog,
        materializer=Materializer(settings.scripts_path, settings.browse_root),
        routes=RouteEditor(settings.caddyfile_path),
        reloader=reloader,
        landing=LandingPage(settings.scripts_path),
    )


def _respond(outcome: Outcome, body=None):
    if not outcome.ok:
        return jsonify(outcome.to_dict()), outcome.error.status
    if body is None:
        return jsonify(outcome.to_dict())
    if outcome.warnings:
        body = dict(body, warnings=list(outcome.warnings))
    return jsonify(body)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Invalid request body')
    return data


def admin_required(fn):
    @wraps(fn)
    def wrap(*args, **kwargs):
        if not session.get('authenticated'):
            return jsonify(error='auth required'), 401
        return fn(*args, **kwargs)

    return wrap


def create_app(settings: Settings = None, synchronizer: Synchronizer = None) -> Flask:
    settings = settings or Settings.from_env()
    sync = synchronizer
    if sync is None:
        sync = build_synchronizer(settings)
        sync.reconcile()

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=settings.secret_key,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
    )
    app.extensions['scriptserver'] = sync

    @app.errorhandler(ScriptServerError)
    def _script_server_error(e):
        return jsonify(error=e.message), e.status

    @app.after_request
    def _headers(resp):
        resp.headers['X-Content-Type-Options'] = 'nosniff'
        return resp

    # -- public ----------------------------------------------------------

    @app.route('/')
    def index():
        entries = sync.snapshot().entries
        user_agent = request.headers.get('User-Agent', '').lower()

        if 'curl' in user_agent or 'wget' in user_agent:
            lines = ['SCRIPT SERVER', '=============']
            lines += [f'  curl -fsSL {request.host}/{e.name} | bash    # {e.description}' for e in entries]
            return Response('\n'.join(lines) + '\n', mimetype='text/plain')

        return Response(render_landing(entries), mimetype='text/html')

    @app.route('/health')
    def health():
        return Response('OK\n', mimetype='text/plain')

    @app.route('/<script_name>')
    def serve_script(script_name):
        entry = sync.snapshot().get(script_name)
        if entry is not None and entry.is_redirect:
            return redirect(entry.target, code=302)
        if entry is not None:
            try:
                return send_from_directory(settings.scripts_path, entry.name, mimetype='text/plain')
            except NotFound:
                pass
        return Response('# Error: Script not found.\n', status=404, mimetype='text/plain')

    # -- auth ------------------------------------------------------------

    @app.post('/login')
    def login():
        form = request.get_json(silent=True) or request.form
        username = str(form.get('username') or '')
        password = str(form.get('password') or '')
        admin = sync.snapshot().admin
        if admin.username and username == admin.username and check_password(password, admin.password_hash):
            session.clear()
            session['authenticated'] = True
            session['username'] = username
            log.info('Admin %s logged in', username)
            return jsonify(message='Logged in')
        log.warning('Failed login for %r from %s', username, request.remote_addr)
        return jsonify(error='Invalid credentials'), 401

    @app.post('/logout')
    def logout():
        session.clear()
        return jsonify(message='Logged out')

    # -- admin API -------------------------------------------------------

    @app.get('/admin/scripts')
    @admin_required
    def list_scripts():
        return jsonify([e.to_dict() for e in sync.snapshot().entries])

    @app.post('/admin/scripts')
    @admin_required
    def create_script():
        return _respond(sync.create(_json_body()))

    @app.put('/admin/scripts/<name>')
    @admin_required
    def update_script(name):
        return _respond(sync.update(name, ScriptPatch.from_json(_json_body())))

    @app.delete('/admin/scripts/<name>')
    @admin_required
    def delete_script(name):
        return _respond(sync.delete(name), {'message': 'Script deleted successfully'})

    @app.get('/admin/scripts/<name>/content')
    @admin_required
    def get_script_content(name):
        outcome = sync.read_content(name)
        return _respond(outcome, {'content': outcome.content})

    @app.put('/admin/scripts/<name>/content')
    @admin_required
    def update_script_content(name):
        content = _json_body().get('content')
        if not isinstance(content, str):
            raise ValidationError('Invalid request body')
        return _respond(sync.write_content(name, content), {'message': 'Script content updated successfully'})

    @app.get('/admin/index-page')
    @admin_required
    def get_index_page():
        return jsonify(scripts=[e.to_dict() for e in sync.snapshot().entries])

    @app.post('/admin/index-page')
    @admin_required
    def update_index_page():
        return _respond(sync.regenerate_landing(), {'message': 'Index page updated successfully'})

    @app.get('/admin/browse')
    @app.get('/admin/browse-files', endpoint='browse_files_legacy')
    @admin_required
    def browse_files():
        return jsonify(sync.materializer.browse(request.args.get('path')))

    return app
