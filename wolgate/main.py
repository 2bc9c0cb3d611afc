"""wolgate entry point: CLI, logging setup, optional status API."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any

from fastapi import FastAPI

from wolgate import __version__
from wolgate.config import Settings, get_settings, parse_address
from wolgate.exceptions import ListenerBindError
from wolgate.services import init_services, shutdown_services
from wolgate.utils.wol import send_wol

logger = logging.getLogger(__name__)

COMMANDS = ("serve", "send")


def _setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("uvicorn.access", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Status API application."""
    from wolgate.api.routes import api_router

    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, version=__version__)
    app.state.settings = settings
    app.include_router(api_router, prefix="/api")
    return app


async def _wait_for_shutdown() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows: Ctrl+C surfaces as KeyboardInterrupt
    await stop.wait()


async def serve(settings: Settings) -> None:
    """Bind the WOL listener, then run until SIGINT/SIGTERM.

    Raises ListenerBindError before anything else runs if the listen
    address cannot be bound.
    """
    logger.info("wolgate v%s starting...", __version__)
    try:
        await init_services(settings)

        if settings.http_enabled:
            import uvicorn

            config = uvicorn.Config(
                create_app(settings),
                host=settings.http_host,
                port=settings.http_port,
                log_level=settings.log_level.lower(),
            )
            logger.info("Status API on http://%s:%s/api", settings.http_host, settings.http_port)
            await uvicorn.Server(config).serve()
        else:
            await _wait_for_shutdown()
    finally:
        await shutdown_services()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wolgate",
        description="Wake-on-LAN gateway for libvirt virtual machines",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_p = sub.add_parser("serve", help="Listen for WOL packets (default command)")
    serve_p.add_argument(
        "--address", "-a",
        metavar="HOST:PORT",
        help="UDP address to listen on (default: WOLGATE_LISTEN_HOST:WOLGATE_LISTEN_PORT, 127.0.0.1:9)",
    )
    serve_p.add_argument(
        "--libvirt-uri", "-l",
        metavar="URI",
        help="libvirt connection URI (default: qemu:///system)",
    )
    serve_p.add_argument("--http", action="store_true", help="Enable the HTTP status API")
    serve_p.add_argument("--dev", action="store_true", help="Log start requests without executing them")
    serve_p.add_argument("--log-level", metavar="LEVEL", help="DEBUG, INFO, WARNING or ERROR")

    send_p = sub.add_parser("send", help="Send a WOL magic packet")
    send_p.add_argument("mac", help="Target MAC address, e.g. 52:54:00:12:34:56")
    send_p.add_argument("--broadcast", "-b", default="255.255.255.255", help="Destination address")
    send_p.add_argument("--port", "-p", type=int, default=9, help="Destination UDP port (default: 9)")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with the serve command's flags applied.

    Raises ValueError (a pydantic ValidationError) for invalid flag values.
    """
    update: dict[str, Any] = {}
    if args.address:
        update["listen_host"], update["listen_port"] = parse_address(args.address)
    if args.libvirt_uri:
        update["libvirt_uri"] = args.libvirt_uri
    if args.http:
        update["http_enabled"] = True
    if args.dev:
        update["mode"] = "dev"
    if args.log_level:
        update["log_level"] = args.log_level
    if not update:
        return settings
    # model_copy skips validation
    return Settings.model_validate({**settings.model_dump(), **update})


def _send(args: argparse.Namespace) -> int:
    try:
        send_wol(args.mac, broadcast=args.broadcast, port=args.port)
    except (ValueError, OSError) as e:
        print(f"Failed to send WoL packet: {e}", file=sys.stderr)
        return 1
    print(f"WoL packet sent to {args.mac} via {args.broadcast}:{args.port}")
    return 0


def run(argv: list[str] | None = None) -> int:
    """Console entry point. Returns the process exit code."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ("-h", "--help", "--version")):
        argv.insert(0, "serve")

    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "send":
        return _send(args)

    try:
        settings = apply_overrides(get_settings(), args)
    except ValueError as e:
        parser.error(str(e))

    _setup_logging(settings)
    try:
        asyncio.run(serve(settings))
    except ListenerBindError as e:
        logger.critical("%s", e.message)
        return 1
    except KeyboardInterrupt:
        pass
    logger.info("wolgate shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
