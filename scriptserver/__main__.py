from __future__ import annotations

import argparse
import logging
import sys

from scriptserver import __version__
from scriptserver.auth import hash_password
from scriptserver.config import Settings
from scriptserver.errors import CatalogLoadError
from scriptserver.web import build_synchronizer, create_app

log = logging.getLogger('scriptserver')


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog='scriptserver', description='Script distribution admin service')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    sub = parser.add_subparsers(dest='command', required=True)

    serve = sub.add_parser('serve', help='run the admin dashboard')
    serve.add_argument('--host', default=None)
    serve.add_argument('--port', type=int, default=None)

    hashpw = sub.add_parser('hash-password', help='print a bcrypt hash for config.yaml')
    hashpw.add_argument('password')

    sub.add_parser('render-index', help='regenerate index.html from the catalog and exit')

    args = parser.parse_args(argv)
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    if args.command == 'hash-password':
        print(hash_password(args.password))
        return 0

    try:
        sync = build_synchronizer(settings)
    except CatalogLoadError as e:
        log.critical('%s', e.message)
        return 1

    if args.command == 'render-index':
        outcome = sync.regenerate_landing()
        return 0 if outcome.ok else 1

    sync.reconcile()
    app = create_app(settings, sync)
    host = args.host or settings.host
    port = args.port or settings.port
    log.info('Admin dashboard starting on %s:%s', host, port)
    app.run(host=host, port=port)
    return 0


if __name__ == '__main__':
    sys.exit(main())
