from typing import Dict, Optional
from pydantic import BaseModel, Field, model_validator


class InterfaceUsage(BaseModel):
    """Accumulated usage for one interface over the current day."""
    interface: str
    total_rx: int = Field(default=0, ge=0)  # bytes since start of day
    total_tx: int = Field(default=0, ge=0)
    last_rx: int = Field(default=0, ge=0)  # last raw counter reading
    last_tx: int = Field(default=0, ge=0)


class DailyUsage(BaseModel):
    """Whole-day usage snapshot, persisted between restarts."""
    date: str  # YYYY-MM-DD, local time
    interfaces: Dict[str, InterfaceUsage] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_interface_keys(self) -> "DailyUsage":
        # Entries are keyed by the interface they describe
        for name, stats in self.interfaces.items():
            if stats.interface != name:
                raise ValueError(
                    f"entry {name!r} describes interface {stats.interface!r}"
                )
        return self

    def sorted_copy(self) -> "DailyUsage":
        """Deep copy with interfaces ordered by name."""
        return DailyUsage(
            date=self.date,
            interfaces={
                name: self.interfaces[name].model_copy()
                for name in sorted(self.interfaces)
            }
        )

    def get(self, interface: str) -> Optional[InterfaceUsage]:
        return self.interfaces.get(interface)
