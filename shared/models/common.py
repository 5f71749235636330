from enum import Enum


class CommandType(str, Enum):
    BLOCK_APP = "block_app"  # Block an application's network access
    LIMIT_APP = "limit_app"  # Throttle an application's bandwidth


class CounterSourceKind(str, Enum):
    AUTO = "auto"
    SYSFS = "sysfs"
    PSUTIL = "psutil"
