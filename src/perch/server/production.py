"""Production server — multi-worker pounce without reload."""


def run_production_server(
    app: object,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    workers: int = 0,
    log_level: str = "info",
) -> None:
    """Start a multi-worker pounce server for *app*.

    The app must be frozen before the first worker starts, so every
    worker shares the same immutable middleware chain and static options.

    Args:
        app: ASGI callable (perch App instance).
        host: Bind host address.
        port: Bind port number.
        workers: Worker count; 0 auto-detects from CPU count.
        log_level: Server log level (``"debug"``, ``"info"``, ...).
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=workers,
        log_level=log_level,
    )
    server = Server(config, app)
    server.run()
