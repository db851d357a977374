"""CLI entry point for the COAR exchange server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="coar-exchange-server",
        description="COAR Notify exchange: LDN inbox and outbox for review workflows",
    )
    parser.add_argument("--host", default=None, help="Bind host (default: from settings, 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: from settings, 8080)")
    parser.add_argument("--config", help="YAML configuration file (overrides environment)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, no Redis required",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["COAR_LOCAL_MODE"] = "1"
    if args.config:
        os.environ["COAR_CONFIG_FILE"] = args.config

    import uvicorn

    from coar_exchange.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "coar_exchange.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
