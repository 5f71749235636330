"""Test configuration for the PacketPilot daemon."""

from datetime import date
from typing import Dict, Tuple

import pytest

from packetpilot.core.accounting import AccountingEngine
from packetpilot.core.discovery import InterfaceDiscovery
from packetpilot.core.errors import CounterReadError
from packetpilot.core.usage_store import UsageRepository


class FakeCounterSource:
    """In-memory counter source whose readings the test controls."""

    def __init__(self, readings: Dict[str, Tuple[int, int]] = None):
        self.readings: Dict[str, Tuple[int, int]] = dict(readings or {})
        self.failing = set()
        self.reads = []

    def set(self, interface: str, rx: int, tx: int):
        self.readings[interface] = (rx, tx)

    def has_counters(self, interface: str) -> bool:
        return interface in self.readings

    def read(self, interface: str) -> Tuple[int, int]:
        self.reads.append(interface)
        if interface in self.failing or interface not in self.readings:
            raise CounterReadError(interface, "simulated failure")
        return self.readings[interface]


class FakeClock:
    """Stands in for date.today."""

    def __init__(self, today: date):
        self.current = today

    def __call__(self) -> date:
        return self.current


@pytest.fixture
def counters():
    """Counter source with eth0 at (1000, 2000)."""
    return FakeCounterSource({"eth0": (1000, 2000)})


@pytest.fixture
def clock():
    return FakeClock(date(2024, 3, 15))


@pytest.fixture
def usage_file(tmp_path):
    return tmp_path / "state" / "daily_usage.json"


@pytest.fixture
def repository(usage_file):
    return UsageRepository(usage_file)


@pytest.fixture
def make_engine(counters, repository, clock):
    """Build an AccountingEngine over the fake counters.

    Every interface known to the fake source has an address, so the
    wildcard selector discovers all of them.
    """
    def _make(selector: str = "any", update_interval: float = 0.01) -> AccountingEngine:
        discovery = InterfaceDiscovery(
            selector,
            counters,
            list_addresses=lambda: {name: ["10.0.0.2"] for name in counters.readings}
        )
        return AccountingEngine(
            discovery,
            repository,
            counters,
            update_interval=update_interval,
            today=clock
        )
    return _make
