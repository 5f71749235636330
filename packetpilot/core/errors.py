"""Exception hierarchy for the PacketPilot daemon."""

from typing import Optional


class PacketPilotError(Exception):
    """Base class for all daemon errors."""


class ConfigurationError(PacketPilotError):
    """Invalid configuration. Fatal at startup."""


class DiscoveryError(ConfigurationError):
    """No usable network interfaces could be found."""


class CounterReadError(PacketPilotError):
    """Reading raw byte counters for an interface failed."""

    def __init__(self, interface: str, reason: str):
        super().__init__(f"failed to read counters for {interface}: {reason}")
        self.interface = interface
        self.reason = reason


class UsageNotFoundError(PacketPilotError):
    """No persisted usage file exists yet."""


class CorruptUsageError(PacketPilotError):
    """The persisted usage file could not be parsed."""


class UsageWriteError(PacketPilotError):
    """Persisting the usage snapshot failed."""


class ReportDeliveryError(PacketPilotError):
    """A usage report could not be delivered after all attempts."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
