"""Daily per-interface usage accounting."""

import asyncio
import threading
from datetime import date
from typing import Callable, List, Optional

from packetpilot.core.counters import CounterSource
from packetpilot.core.discovery import InterfaceDiscovery
from packetpilot.core.errors import (
    CorruptUsageError,
    CounterReadError,
    UsageNotFoundError,
    UsageWriteError,
)
from packetpilot.core.periodic import wait_for_stop
from packetpilot.core.usage_store import UsageRepository
from packetpilot.logger import StructuredLogger, get_logger
from shared.models import DailyUsage, InterfaceUsage

BYTES_PER_KB = 1024
BYTES_PER_MB = 1024 * 1024


def counter_delta(current: int, previous: int) -> int:
    """Bytes counted between two raw readings.

    A reading below the previous one means the counter was reset (interface
    restart, driver reload or wraparound), so everything it holds is new.
    """
    if current >= previous:
        return current - previous
    return current


class AccountingEngine:
    """Owns the day's usage snapshot and keeps it current.

    Every tick reads raw counters for each monitored interface, adds the
    deltas to the day's totals and persists the snapshot. All access to the
    snapshot goes through one lock; readers only ever get copies.
    """

    def __init__(
        self,
        discovery: InterfaceDiscovery,
        repository: UsageRepository,
        counter_source: CounterSource,
        update_interval: float = 5.0,
        today: Callable[[], date] = date.today,
        log: Optional[StructuredLogger] = None
    ):
        self.discovery = discovery
        self.repository = repository
        self.counter_source = counter_source
        self.update_interval = update_interval
        self.today = today
        self.log = log or get_logger(__name__)

        self._usage: Optional[DailyUsage] = None
        self._interfaces: List[str] = []
        self._lock = threading.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def interfaces(self) -> List[str]:
        return list(self._interfaces)

    @property
    def initialized(self) -> bool:
        return self._usage is not None

    async def start(self, stop_event: Optional[asyncio.Event] = None):
        """Initialize usage and start the accounting loop.

        Raises ConfigurationError if interface discovery fails.
        """
        self.initialize()
        self._stop_event = stop_event or asyncio.Event()
        self._task = asyncio.create_task(self._accounting_loop())
        self.log.info("Accounting engine started", interval=f"{self.update_interval}s")

    async def stop(self):
        """Stop the loop after the current tick."""
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        self.log.info("Accounting engine stopped")

    async def _accounting_loop(self):
        """Main accounting loop."""
        while not await wait_for_stop(self._stop_event, self.update_interval):
            try:
                self.update_usage()
            except Exception as e:
                self.log.error("Usage update failed", exc_info=True, error=e)

    def initialize(self):
        """Discover interfaces, then load or create today's usage.

        Discovery must run first: loading needs the interface set to seed
        interfaces missing from the saved snapshot.
        """
        self._interfaces = self.discovery.discover()
        self.log.info("Monitoring interfaces", interfaces=self._interfaces)

        with self._lock:
            self._usage = self._load_or_init()

    def update_usage(self):
        """Run one accounting tick."""
        with self._lock:
            if self._usage is None:
                return

            today = self._today()
            if self._usage.date != today:
                self.log.info(
                    "Day rollover, resetting daily usage",
                    old_date=self._usage.date,
                    new_date=today
                )
                self._usage = self._init_usage(today)
                return

            for iface in self._interfaces:
                stats = self._usage.get(iface)
                if stats is None:
                    # Seeding failed earlier
                    self._seed_interface(self._usage, iface)
                else:
                    self._update_interface(stats)

            self._persist(self._usage)

    def get_daily_usage(self) -> Optional[DailyUsage]:
        """Copy of the current snapshot sorted by interface, or None before startup."""
        with self._lock:
            if self._usage is None:
                return None
            return self._usage.sorted_copy()

    def reset_stats(self):
        """Zero today's totals for every interface and persist immediately."""
        with self._lock:
            if self._usage is None:
                self.log.warn("Daily usage not initialized, nothing to reset")
                return
            for stats in self._usage.interfaces.values():
                stats.total_rx = 0
                stats.total_tx = 0
            self._persist(self._usage)
        self.log.info("Daily usage statistics reset for all interfaces")

    def _today(self) -> str:
        return self.today().isoformat()

    def _load_or_init(self) -> DailyUsage:
        today = self._today()
        try:
            usage = self.repository.load()
        except UsageNotFoundError:
            self.log.info("No saved daily usage, starting fresh", path=self.repository.path)
            return self._init_usage(today)
        except CorruptUsageError as e:
            self.log.warn("Failed to load daily usage, starting fresh", error=e)
            return self._init_usage(today)

        if usage.date != today:
            self.log.info(
                "New day detected, resetting daily usage",
                old_date=usage.date,
                new_date=today
            )
            return self._init_usage(today)

        missing = [iface for iface in self._interfaces if iface not in usage.interfaces]
        if missing:
            self.log.info("Found new interfaces, initializing them", interfaces=missing)
            for iface in missing:
                self._seed_interface(usage, iface)
            self._persist(usage)

        for name in sorted(usage.interfaces):
            stats = usage.interfaces[name]
            self.log.info(
                "Loaded daily usage for interface",
                interface=name,
                date=usage.date,
                total_rx_mb=stats.total_rx / BYTES_PER_MB,
                total_tx_mb=stats.total_tx / BYTES_PER_MB
            )
        return usage

    def _init_usage(self, today: str) -> DailyUsage:
        usage = DailyUsage(date=today)
        for iface in self._interfaces:
            self._seed_interface(usage, iface)
        self._persist(usage)
        self.log.info(
            "Initialized daily usage for all interfaces",
            date=today,
            interfaces=list(usage.interfaces)
        )
        return usage

    def _seed_interface(self, usage: DailyUsage, iface: str) -> bool:
        """Start an interface at zero totals from a fresh counter reading.

        Seeding from zero would count the whole raw counter on the next tick,
        so an interface that cannot be read is left out until it can.
        """
        try:
            rx, tx = self.counter_source.read(iface)
        except CounterReadError as e:
            self.log.warn("Failed to read interface counters, will retry", interface=iface, error=e)
            return False

        usage.interfaces[iface] = InterfaceUsage(interface=iface, last_rx=rx, last_tx=tx)
        self.log.info("Initialized interface usage", interface=iface, last_rx=rx, last_tx=tx)
        return True

    def _update_interface(self, stats: InterfaceUsage):
        try:
            rx, tx = self.counter_source.read(stats.interface)
        except CounterReadError as e:
            self.log.warn("Failed to read interface counters", interface=stats.interface, error=e)
            return

        if rx < stats.last_rx or tx < stats.last_tx:
            self.log.warn(
                "Interface counter reset detected",
                interface=stats.interface,
                last_rx=stats.last_rx,
                rx=rx,
                last_tx=stats.last_tx,
                tx=tx
            )

        delta_rx = counter_delta(rx, stats.last_rx)
        delta_tx = counter_delta(tx, stats.last_tx)

        stats.total_rx += delta_rx
        stats.total_tx += delta_tx
        stats.last_rx = rx
        stats.last_tx = tx

        self.log.debug(
            "Interface usage updated",
            interface=stats.interface,
            delta_rx_kb=delta_rx / BYTES_PER_KB,
            delta_tx_kb=delta_tx / BYTES_PER_KB,
            total_rx_mb=stats.total_rx / BYTES_PER_MB,
            total_tx_mb=stats.total_tx / BYTES_PER_MB
        )

    def _persist(self, usage: DailyUsage) -> bool:
        try:
            self.repository.save(usage)
            return True
        except UsageWriteError as e:
            self.log.warn("Failed to save daily usage", error=e)
            return False
