"""On-disk persistence of the daily usage snapshot."""

import os
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from packetpilot.core.errors import CorruptUsageError, UsageNotFoundError, UsageWriteError
from shared.models import DailyUsage

DEFAULT_USAGE_FILE = "/var/lib/packetpilot/daily_usage.json"


class UsageRepository:
    """Loads and saves the DailyUsage JSON document."""

    def __init__(self, path: Union[str, Path] = DEFAULT_USAGE_FILE):
        self.path = Path(path)

    @property
    def temp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def load(self) -> DailyUsage:
        """Load the persisted snapshot.

        Raises:
            UsageNotFoundError: no usage file exists yet
            CorruptUsageError: the file is unreadable or not a valid snapshot
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as e:
            raise UsageNotFoundError(f"no usage file at {self.path}") from e
        except OSError as e:
            raise CorruptUsageError(f"failed to read {self.path}: {e}") from e

        try:
            return DailyUsage.model_validate_json(data)
        except ValidationError as e:
            raise CorruptUsageError(f"invalid usage file {self.path}: {e}") from e

    def save(self, usage: DailyUsage):
        """Persist the snapshot, replacing the previous file in one step.

        The document is written to a temporary file next to the target and
        renamed over it, so a failed save leaves the prior file intact.

        Raises:
            UsageWriteError: the directory or file could not be written
        """
        data = usage.model_dump_json(indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.temp_path, "w") as f:
                f.write(data)
            os.replace(self.temp_path, self.path)
        except OSError as e:
            raise UsageWriteError(f"failed to save usage to {self.path}: {e}") from e
