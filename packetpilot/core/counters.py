"""Raw per-interface byte counter sources."""

import os
from pathlib import Path
from typing import Protocol, Tuple, Union

import psutil

from packetpilot.core.errors import CounterReadError, ConfigurationError
from shared.models import CounterSourceKind

SYSFS_NET_ROOT = "/sys/class/net"


class CounterSource(Protocol):
    """Reads cumulative rx/tx byte counters for a named interface."""

    def read(self, interface: str) -> Tuple[int, int]:
        """Return (rx_bytes, tx_bytes) as of now; raise CounterReadError on failure."""
        ...

    def has_counters(self, interface: str) -> bool:
        """Whether the interface exposes readable counters."""
        ...


class SysfsCounterSource:
    """Counters from /sys/class/net/<iface>/statistics (Linux)."""

    def __init__(self, root: Union[str, Path] = SYSFS_NET_ROOT):
        self.root = Path(root)

    def _stat_path(self, interface: str, name: str) -> Path:
        return self.root / interface / "statistics" / name

    def has_counters(self, interface: str) -> bool:
        return (
            self._stat_path(interface, "rx_bytes").is_file()
            and self._stat_path(interface, "tx_bytes").is_file()
        )

    def read(self, interface: str) -> Tuple[int, int]:
        rx = self._read_counter(interface, "rx_bytes")
        tx = self._read_counter(interface, "tx_bytes")
        return rx, tx

    def _read_counter(self, interface: str, name: str) -> int:
        path = self._stat_path(interface, name)
        try:
            value = int(path.read_text().strip())
        except OSError as e:
            raise CounterReadError(interface, f"{name}: {e}") from e
        except ValueError as e:
            raise CounterReadError(interface, f"{name}: invalid counter value") from e
        if value < 0:
            raise CounterReadError(interface, f"{name}: negative counter value")
        return value


class PsutilCounterSource:
    """Counters from psutil.net_io_counters (portable)."""

    def has_counters(self, interface: str) -> bool:
        try:
            return interface in psutil.net_io_counters(pernic=True)
        except OSError:
            return False

    def read(self, interface: str) -> Tuple[int, int]:
        try:
            counters = psutil.net_io_counters(pernic=True)
        except OSError as e:
            raise CounterReadError(interface, str(e)) from e

        stats = counters.get(interface)
        if stats is None:
            raise CounterReadError(interface, "interface not found")
        return stats.bytes_recv, stats.bytes_sent


def create_counter_source(kind: Union[CounterSourceKind, str] = CounterSourceKind.AUTO):
    """Build the configured counter source.

    "auto" uses sysfs when it is available and psutil otherwise.
    """
    try:
        kind = CounterSourceKind(kind)
    except ValueError:
        raise ConfigurationError(f"unknown counter source {kind!r}") from None

    if kind == CounterSourceKind.SYSFS:
        return SysfsCounterSource()
    if kind == CounterSourceKind.PSUTIL:
        return PsutilCounterSource()
    if os.path.isdir(SYSFS_NET_ROOT):
        return SysfsCounterSource()
    return PsutilCounterSource()
