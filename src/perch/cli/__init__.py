"""Perch CLI — serve a directory, or run an existing app.

Entry point registered as ``perch`` in ``pyproject.toml``::

    [project.scripts]
    perch = "perch.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``perch`` command."""
    parser = argparse.ArgumentParser(
        prog="perch",
        description="Perch — static assets as a link in an ASGI middleware chain.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- perch serve ------------------------------------------------------
    serve_parser = subparsers.add_parser("serve", help="Serve a directory of static files")
    serve_parser.add_argument("directory", help="Directory to serve")
    serve_parser.add_argument("--prefix", default="", help="URL prefix to mount under")
    serve_parser.add_argument(
        "--index-file", default="index.html", help="File served for directory requests"
    )
    serve_parser.add_argument(
        "--expires",
        type=int,
        default=0,
        metavar="SECONDS",
        help="Send Expires/ETag headers valid for SECONDS (0 disables)",
    )
    serve_parser.add_argument(
        "--skip-logging", action="store_true", help="Don't log served files"
    )
    serve_parser.add_argument(
        "--custom",
        action="store_true",
        help="Also serve <custom-path>/public overrides ahead of DIRECTORY",
    )
    serve_parser.add_argument("--custom-path", default=None, help="Site override directory")
    serve_parser.add_argument("--work-path", default=None, help="Base for relative paths")
    _add_server_arguments(serve_parser)

    # -- perch run --------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Run a perch App")
    run_parser.add_argument("app", help="Import string (e.g. myapp:app)")
    _add_server_arguments(run_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from perch.cli._serve import serve_directory

        serve_directory(args)
    elif args.command == "run":
        from perch.cli._run import run_server

        run_server(args)


def _add_server_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", default=None, help="Bind host address")
    parser.add_argument("--port", type=int, default=None, help="Bind port number")
    parser.add_argument("--debug", action="store_true", help="Single worker with auto-reload")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=("debug", "info", "warning", "error"),
        help="Log level (default: info)",
    )
