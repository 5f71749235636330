from .usage import InterfaceUsage, DailyUsage
from .report import InterfaceUsageReport, DailyUsageReport, Command, ServerResponse
from .common import CommandType, CounterSourceKind

__all__ = [
    "InterfaceUsage",
    "DailyUsage",
    "InterfaceUsageReport",
    "DailyUsageReport",
    "Command",
    "ServerResponse",
    "CommandType",
    "CounterSourceKind",
]
