"""Usage reporter for sending daily totals to the collector."""

import asyncio
from datetime import datetime
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from packetpilot.config import ReporterSettings, ServerSettings
from packetpilot.core.commands import CommandDispatcher
from packetpilot.core.errors import ReportDeliveryError
from packetpilot.core.periodic import wait_for_stop
from packetpilot.logger import StructuredLogger, get_logger
from shared.models import DailyUsage, DailyUsageReport, InterfaceUsageReport, ServerResponse

REPORT_PATH = "/api/v1/traffic/report"
USER_AGENT = "PacketPilot-Daemon/1.0"

BYTES_PER_MB = 1024 * 1024


def build_report(
    usage: DailyUsage,
    device_id: str,
    timestamp: Optional[datetime] = None
) -> DailyUsageReport:
    """Build the upstream report from a usage snapshot.

    Interfaces are sorted by name and totals are converted to megabytes
    (1 MB = 1024 * 1024 bytes).
    """
    interfaces = []
    total_rx = 0
    total_tx = 0

    for name in sorted(usage.interfaces):
        stats = usage.interfaces[name]
        interfaces.append(InterfaceUsageReport(
            interface=name,
            total_rx=stats.total_rx,
            total_tx=stats.total_tx,
            total_rx_mb=stats.total_rx / BYTES_PER_MB,
            total_tx_mb=stats.total_tx / BYTES_PER_MB
        ))
        total_rx += stats.total_rx
        total_tx += stats.total_tx

    return DailyUsageReport(
        device_id=device_id,
        timestamp=timestamp or datetime.now().astimezone(),
        date=usage.date,
        interfaces=interfaces,
        total_rx_mb=total_rx / BYTES_PER_MB,
        total_tx_mb=total_tx / BYTES_PER_MB
    )


class UsageReporter:
    """Periodically reports the day's usage to the collector."""

    def __init__(
        self,
        server: ServerSettings,
        settings: ReporterSettings,
        get_daily_usage: Callable[[], Optional[DailyUsage]],
        dispatcher: Optional[CommandDispatcher] = None,
        client: Optional[httpx.AsyncClient] = None,
        log: Optional[StructuredLogger] = None
    ):
        """
        Initialize the usage reporter.

        Args:
            server: Collector connection settings and device identity
            settings: Report interval and retry policy
            get_daily_usage: Returns a usage snapshot, or None if not ready
            dispatcher: Receives commands from collector responses
            client: HTTP client to use; one is created on demand otherwise
            log: Structured logger
        """
        self.server = server
        self.settings = settings
        self.get_daily_usage = get_daily_usage
        self.log = log or get_logger(__name__)
        self.dispatcher = dispatcher or CommandDispatcher(log=self.log)
        self._client = client
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        return f"{self.server.base_url}{REPORT_PATH}"

    async def start(self, stop_event: Optional[asyncio.Event] = None):
        """Start the reporting loop."""
        if stop_event is not None:
            self._stop_event = stop_event
        self._task = asyncio.create_task(self._report_loop())
        self.log.info(
            "Starting daily usage reporter",
            server=f"{self.server.host}:{self.server.port}",
            interval=f"{self.settings.report_interval}s"
        )

    async def stop(self):
        """Stop reporting after the current report and close the client."""
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        if self._client:
            await self._client.aclose()
            self._client = None
        self.log.info("Daily usage reporter stopped")

    async def _report_loop(self):
        """Main reporting loop."""
        while not await wait_for_stop(self._stop_event, self.settings.report_interval):
            try:
                await self.send_report()
            except ReportDeliveryError as e:
                self.log.error("Failed to send report", error=e)
            except Exception as e:
                self.log.error("Error reporting usage", exc_info=True, error=e)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout)
        return self._client

    async def send_report(self) -> Optional[ServerResponse]:
        """Send one usage report, retrying per the configured policy.

        Returns the parsed collector reply, or None when there was nothing to
        report or the reply could not be parsed. Accumulated totals are never
        reset here; they keep growing until the day rolls over.

        Raises:
            ReportDeliveryError: every attempt failed; carries the last error
        """
        usage = self.get_daily_usage()
        if usage is None:
            self.log.debug("No daily usage data to report")
            return None

        report = build_report(usage, self.server.device_id)
        body = report.model_dump_json().encode()

        self.log.debug(
            "Created interface reports",
            count=len(report.interfaces),
            total_rx_mb=report.total_rx_mb,
            total_tx_mb=report.total_tx_mb
        )

        attempts = self.settings.retry_attempts
        last_error: Optional[ReportDeliveryError] = None

        for attempt in range(1, attempts + 1):
            self.log.debug(
                "Sending daily usage report",
                attempt=attempt,
                url=self.url,
                date=report.date,
                interfaces=len(report.interfaces)
            )
            try:
                response = await self._post(body)
            except httpx.RequestError as e:
                last_error = ReportDeliveryError(f"request failed: {e}")
                self.log.warn("Report attempt failed", attempt=attempt, error=e)
            else:
                if response.is_success:
                    return self._handle_response(response, report)
                last_error = ReportDeliveryError(
                    f"server returned status {response.status_code}",
                    status_code=response.status_code
                )
                self.log.warn("Server returned error status", attempt=attempt, status=response.status_code)

            if attempt < attempts:
                if await wait_for_stop(self._stop_event, self.settings.retry_delay):
                    self.log.info("Shutdown requested, abandoning report retries")
                    break

        raise last_error

    async def _post(self, body: bytes) -> httpx.Response:
        # Fresh request per attempt
        return await self._get_client().post(
            self.url,
            content=body,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.server.api_key}",
                "User-Agent": USER_AGENT,
            }
        )

    def _handle_response(
        self,
        response: httpx.Response,
        report: DailyUsageReport
    ) -> Optional[ServerResponse]:
        try:
            reply = ServerResponse.model_validate_json(response.content)
        except ValidationError as e:
            # Delivered all the same
            self.log.warn("Failed to parse server response", error=e)
            return None

        self.log.info(
            "Daily usage report sent successfully",
            server_message=reply.message,
            date=report.date,
            interfaces=len(report.interfaces),
            total_rx_mb=report.total_rx_mb,
            total_tx_mb=report.total_tx_mb
        )
        if reply.commands:
            self.dispatcher.dispatch_all(reply.commands)
        return reply
