"""Local control API for querying and resetting usage."""

import logging
from typing import Callable, Optional

from aiohttp import web

from shared.models import DailyUsage

logger = logging.getLogger(__name__)


class ControlAPI:
    """Simple HTTP API exposing the daemon's entry points on loopback."""

    def __init__(
        self,
        get_daily_usage: Callable[[], Optional[DailyUsage]],
        reset_stats: Callable[[], None],
        host: str = "127.0.0.1",
        port: int = 7878
    ):
        """
        Initialize control API.

        Args:
            get_daily_usage: Returns the current usage snapshot, or None
            reset_stats: Zeroes today's totals
            host: Address to listen on
            port: Port to listen on
        """
        self.get_daily_usage = get_daily_usage
        self.reset_stats = reset_stats
        self.host = host
        self.port = port
        self._app = self.create_app()
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/usage", self._handle_usage)
        app.router.add_post("/reset-stats", self._handle_reset_stats)
        return app

    async def start(self):
        """Start the control API server."""
        try:
            self._runner = web.AppRunner(self._app)
            await self._runner.setup()
            self._site = web.TCPSite(self._runner, self.host, self.port)
            await self._site.start()
            logger.info(f"Control API listening on {self.host}:{self.port}")
        except OSError as e:
            logger.error(f"Failed to start Control API: {e}")
            logger.warning("Usage queries and resets from the CLI will not work")

    async def stop(self):
        """Stop the control API server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Control API stopped")

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({"status": "healthy"})

    async def _handle_usage(self, request: web.Request) -> web.Response:
        """Return the current daily usage snapshot."""
        usage = self.get_daily_usage()
        if usage is None:
            return web.json_response(
                {"status": "error", "message": "Daily usage not initialized"},
                status=503
            )
        return web.json_response(usage.model_dump(mode="json"))

    async def _handle_reset_stats(self, request: web.Request) -> web.Response:
        """Zero today's totals."""
        logger.info("Received stats reset request")
        self.reset_stats()
        return web.json_response({"status": "ok", "message": "Daily usage statistics reset"})
