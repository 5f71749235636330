"""Main entry point for the PacketPilot daemon."""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from typing import List, Optional

import httpx

from packetpilot.config import CONFIG_ENV_VAR, LOG_LEVELS, VERSION, AgentSettings, load_settings
from packetpilot.core.accounting import BYTES_PER_MB, AccountingEngine
from packetpilot.core.commands import CommandDispatcher
from packetpilot.core.control_api import ControlAPI
from packetpilot.core.counters import CounterSource, create_counter_source
from packetpilot.core.discovery import InterfaceDiscovery
from packetpilot.core.errors import ConfigurationError
from packetpilot.core.reporter import UsageReporter
from packetpilot.core.usage_store import UsageRepository
from packetpilot.logger import setup_logging
from shared.models import DailyUsage

BUILD = "dev"

logger = logging.getLogger(__name__)


class PacketPilotDaemon:
    """Main PacketPilot daemon that coordinates all components."""

    def __init__(self, settings: AgentSettings, counter_source: Optional[CounterSource] = None):
        self.settings = settings
        self.counter_source = counter_source or create_counter_source(settings.monitor.counter_source)

        # Accounting
        self.repository = UsageRepository(settings.monitor.usage_file)
        self.discovery = InterfaceDiscovery(settings.monitor.interface, self.counter_source)
        self.accounting = AccountingEngine(
            self.discovery,
            self.repository,
            self.counter_source,
            update_interval=settings.monitor.update_interval
        )

        # Reporting
        self.dispatcher = CommandDispatcher()
        self.reporter = UsageReporter(
            settings.server,
            settings.reporter,
            get_daily_usage=self.accounting.get_daily_usage,
            dispatcher=self.dispatcher
        )

        # Local control API
        self.control_api: Optional[ControlAPI] = None
        if settings.control.enabled:
            self.control_api = ControlAPI(
                get_daily_usage=self.get_daily_usage,
                reset_stats=self.reset_stats,
                host=settings.control.host,
                port=settings.control.port
            )

    def get_daily_usage(self) -> Optional[DailyUsage]:
        """Read-only snapshot of today's usage."""
        return self.accounting.get_daily_usage()

    def reset_stats(self):
        """Manually zero today's totals."""
        self.accounting.reset_stats()

    async def run(self, stop_event: asyncio.Event):
        """Run the daemon until the stop event is set.

        Raises ConfigurationError when interface discovery fails; nothing has
        been started at that point.
        """
        logger.info("=" * 70)
        logger.info("PacketPilot Daemon Starting")
        logger.info(f"  Version: {VERSION} (build: {BUILD})")
        logger.info(f"  Device ID: {self.settings.server.device_id}")
        logger.info(f"  Collector: {self.settings.server.base_url}")
        logger.info(f"  Interface: {self.settings.monitor.interface}")
        logger.info("=" * 70)

        await self.accounting.start(stop_event)
        await self.reporter.start(stop_event)
        if self.control_api:
            await self.control_api.start()

        logger.info("PacketPilot daemon running. Press Ctrl+C to stop.")

        await stop_event.wait()

        logger.info("Shutting down daemon components")
        if self.control_api:
            await self.control_api.stop()
        await self.reporter.stop()
        await self.accounting.stop()
        logger.info("PacketPilot daemon stopped")


async def run_daemon(settings: AgentSettings):
    """Run the daemon with SIGINT/SIGTERM wired to shutdown."""
    daemon = PacketPilotDaemon(settings)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.run(stop_event)


def call_control_api(settings: AgentSettings, method: str, path: str) -> dict:
    """Call the running daemon's control API."""
    url = f"{settings.control.base_url}{path}"
    response = httpx.request(method, url, timeout=10.0)
    response.raise_for_status()
    return response.json()


def print_usage(data: dict):
    usage = DailyUsage.model_validate(data)
    print(f"Daily usage for {usage.date}")
    for name in sorted(usage.interfaces):
        stats = usage.interfaces[name]
        print(
            f"  {name:<16} rx {stats.total_rx / BYTES_PER_MB:>10.2f} MB"
            f"  tx {stats.total_tx / BYTES_PER_MB:>10.2f} MB"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="packetpilot-daemon",
        description="PacketPilot traffic monitoring daemon"
    )
    parser.add_argument("-c", "--config", help="Path to config file")
    parser.add_argument("-l", "--log-level", choices=LOG_LEVELS, help="Log level")
    parser.add_argument("--json", action="store_true", help="Print usage as JSON")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run the daemon (default)")
    subparsers.add_parser("version", help="Print version information")
    subparsers.add_parser("usage", help="Show the running daemon's daily usage")
    subparsers.add_parser("reset", help="Reset the running daemon's daily totals")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns the process exit status."""
    args = build_parser().parse_args(argv)
    command = args.command or "run"

    if command == "version":
        print(f"PacketPilot Daemon v{VERSION} (build: {BUILD})")
        return 0

    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"Error: failed to load config: {e}", file=sys.stderr)
        return 1

    if command in ("usage", "reset"):
        path, method = ("/usage", "GET") if command == "usage" else ("/reset-stats", "POST")
        try:
            data = call_control_api(settings, method, path)
        except httpx.HTTPStatusError as e:
            print(f"Error: daemon returned {e.response.status_code}: {e.response.text}", file=sys.stderr)
            return 1
        except httpx.HTTPError as e:
            print(f"Error: daemon unreachable at {settings.control.base_url}: {e}", file=sys.stderr)
            return 1

        if command == "reset":
            print(data.get("message", "Daily usage statistics reset"))
        elif args.json:
            print(json.dumps(data, indent=2))
        else:
            print_usage(data)
        return 0

    try:
        setup_logging(settings.logging, args.log_level)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run_daemon(settings))
    except ConfigurationError as e:
        logger.error(f"Daemon failed: {e}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
