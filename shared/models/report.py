from datetime import datetime
from typing import List
from pydantic import BaseModel, Field


class InterfaceUsageReport(BaseModel):
    """Per-interface totals as sent to the collector."""
    interface: str
    total_rx: int = 0  # bytes
    total_tx: int = 0  # bytes
    total_rx_mb: float = 0.0
    total_tx_mb: float = 0.0


class DailyUsageReport(BaseModel):
    """Report posted to the collector every report interval."""
    device_id: str
    timestamp: datetime
    date: str  # YYYY-MM-DD
    interfaces: List[InterfaceUsageReport] = Field(default_factory=list)  # sorted by interface
    total_rx_mb: float = 0.0  # combined across interfaces
    total_tx_mb: float = 0.0


class Command(BaseModel):
    """Command issued by the collector in a report response."""
    type: str  # kept as str so unknown types still parse
    app_name: str = ""
    action: str = ""


class ServerResponse(BaseModel):
    """Collector reply to a usage report."""
    success: bool = False
    message: str = ""
    commands: List[Command] = Field(default_factory=list)
