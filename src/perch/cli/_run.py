"""``perch run`` — start the server for an existing App.

Resolves an import string to a perch App and starts either the
development server (single worker, auto-reload) or the production
server (multi-worker).
"""

import argparse
import sys

from perch.cli._logging import configure_logging
from perch.cli._resolve import resolve_app


def run_server(args: argparse.Namespace) -> None:
    """Start the perch server for ``args.app``.

    CLI flags override the app's config for host, port and log level.
    """
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    host = args.host or app.config.host
    port = args.port or app.config.port
    log_level = args.log_level or app.config.log_level
    configure_logging(log_level)

    if args.debug or app.config.debug:
        from perch.server.dev import run_dev_server

        run_dev_server(
            app,
            host,
            port,
            reload=True,
            reload_include=app.config.reload_include,
            reload_dirs=app.config.reload_dirs,
            app_path=args.app,
        )
    else:
        from perch.server.production import run_production_server

        run_production_server(
            app,
            host=host,
            port=port,
            workers=app.config.workers,
            log_level=log_level,
        )
