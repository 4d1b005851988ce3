"""Command line entry point for hostwatch."""

import argparse
import logging
import sys
from collections.abc import Sequence

from hostwatch.assembler import SnapshotAssembler
from hostwatch.config import AgentConfig, ConfigError
from hostwatch.history import HistoryStore
from hostwatch.logs import setup_logging
from hostwatch.sampler import PlatformSampler
from hostwatch.scheduler import DeliveryChannel, build_schedulers

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hostwatch",
        description="Host metrics monitoring agent.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Collect metrics and stream them over WebSocket")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="Listen port")
    serve.add_argument("--interval", type=float, dest="collect_interval",
                       help="Collection interval in seconds")
    serve.add_argument("--capacity", type=int, dest="max_metrics",
                       help="Number of snapshots kept in memory")
    serve.add_argument("--log-level", dest="log_level", help="Logging level")

    dashboard = subparsers.add_parser("dashboard", help="Show live metrics in the terminal")
    dashboard.add_argument("--interval", type=float, dest="collect_interval",
                           help="Collection interval in seconds")
    return parser


def load_config(args: argparse.Namespace, environ=None) -> AgentConfig:
    """Merge environment configuration with command line overrides."""
    overrides = {
        name: getattr(args, name, None)
        for name in ("host", "port", "collect_interval", "max_metrics", "log_level")
    }
    if overrides["log_level"] is not None:
        overrides["log_level"] = overrides["log_level"].upper()
    return AgentConfig.from_env(environ).with_overrides(**overrides)


def serve(config: AgentConfig) -> None:
    """Run the collection schedulers and the streaming server until interrupted."""
    import uvicorn

    from hostwatch.gateway import create_app

    setup_logging(config.log_level, config.log_file)
    history = HistoryStore(capacity=config.max_metrics)
    channel = DeliveryChannel(maxsize=config.delivery_queue_size)
    schedulers = build_schedulers(
        config, lambda: SnapshotAssembler(PlatformSampler()), history, channel
    )
    app = create_app(config, history, schedulers)

    uvicorn_config = uvicorn.Config(
        app=app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        server_header=False,
    )
    server = uvicorn.Server(uvicorn_config)
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Server stopped")


def dashboard(config: AgentConfig) -> None:
    """Run the terminal dashboard."""
    from hostwatch.app import DashboardApp

    # The terminal belongs to the UI; log to the file only
    setup_logging(config.log_level, config.log_file, console=False)

    channel = DeliveryChannel(maxsize=config.delivery_queue_size)
    DashboardApp(channel=channel, interval=config.collect_interval).run()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the hostwatch command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args)
    except ConfigError as exc:
        print(f"hostwatch: configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.command == "serve":
        serve(config)
    else:
        dashboard(config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
