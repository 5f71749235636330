"""Network interface discovery."""

from typing import Callable, Dict, List, Optional

import psutil

from packetpilot.core.counters import CounterSource
from packetpilot.core.errors import ConfigurationError, DiscoveryError
from packetpilot.logger import StructuredLogger, get_logger

# Selectors meaning "every interface with an address and counters"
WILDCARD_SELECTORS = frozenset({"any", "all"})


class InterfaceDiscovery:
    """Resolves the configured interface selector to a sorted interface list."""

    def __init__(
        self,
        selector: str,
        counter_source: CounterSource,
        list_addresses: Callable[[], Dict[str, list]] = psutil.net_if_addrs,
        log: Optional[StructuredLogger] = None
    ):
        """
        Initialize interface discovery.

        Args:
            selector: Interface name, or "any"/"all" for every suitable interface
            counter_source: Used to check that an interface exposes counters
            list_addresses: Returns interface name -> assigned addresses
            log: Structured logger
        """
        self.selector = selector.strip()
        self.counter_source = counter_source
        self.list_addresses = list_addresses
        self.log = log or get_logger(__name__)

    @property
    def is_wildcard(self) -> bool:
        return self.selector.lower() in WILDCARD_SELECTORS

    def discover(self) -> List[str]:
        """Return interface names to monitor, sorted and deduplicated.

        Raises:
            ConfigurationError: a named interface has no counters
            DiscoveryError: no suitable interfaces were found
        """
        if self.is_wildcard:
            interfaces = self._discover_all()
        elif self.counter_source.has_counters(self.selector):
            interfaces = {self.selector}
        else:
            raise ConfigurationError(
                f"interface {self.selector} not found or no statistics available"
            )

        if not interfaces:
            raise DiscoveryError("no suitable network interfaces found")

        return sorted(interfaces)

    def _discover_all(self) -> set:
        try:
            addresses = self.list_addresses()
        except OSError as e:
            raise DiscoveryError(f"failed to find network devices: {e}") from e

        interfaces = set()
        for name, addrs in addresses.items():
            if not addrs:
                continue
            if self.counter_source.has_counters(name):
                interfaces.add(name)
            else:
                self.log.debug("Skipping interface without statistics", interface=name)
        return interfaces
