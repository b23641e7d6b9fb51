"""``perch serve`` — serve a directory with no application behind it.

Builds an App whose only routes are the static mounts; anything they
decline ends in the router's plain 404.
"""

import argparse
import sys
from dataclasses import replace
from datetime import timedelta

from perch.app import App
from perch.cli._logging import configure_logging
from perch.config import AppConfig
from perch.errors import ConfigurationError
from perch.middleware.static import StaticOptions


def build_app(args: argparse.Namespace) -> App:
    """Build the App described by the ``serve`` arguments."""
    config = AppConfig(debug=args.debug)
    overrides: dict[str, object] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.work_path:
        overrides["work_path"] = args.work_path
    if args.custom_path:
        overrides["custom_path"] = args.custom_path
    if args.log_level:
        overrides["log_level"] = args.log_level
    config = replace(config, **overrides)  # type: ignore[arg-type]

    try:
        expires_after = timedelta(seconds=args.expires)
    except OverflowError as exc:
        msg = f"expires_after out of range: {args.expires} seconds"
        raise ConfigurationError(msg) from exc

    options = StaticOptions(
        index_file=args.index_file,
        skip_logging=args.skip_logging,
        expires_after=expires_after,
        prefix=args.prefix,
    )

    app = App(config)
    if args.custom:
        app.mount_custom(options)
    app.mount_static(args.directory, options)
    return app


def serve_directory(args: argparse.Namespace) -> None:
    """Serve ``args.directory`` until interrupted."""
    try:
        app = build_app(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    configure_logging(app.config.log_level)

    if app.config.debug:
        from perch.server.dev import run_dev_server

        run_dev_server(
            app,
            app.config.host,
            app.config.port,
            reload=True,
            reload_dirs=(str(args.directory),),
        )
    else:
        from perch.server.production import run_production_server

        run_production_server(
            app,
            host=app.config.host,
            port=app.config.port,
            workers=app.config.workers,
            log_level=app.config.log_level,
        )
