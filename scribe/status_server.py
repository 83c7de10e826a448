"""Health check and status HTTP endpoints."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from aiohttp import web

from . import __version__

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StatusServer:
    """Serves ``GET /`` and ``GET /status`` as JSON."""

    def __init__(self,
                 bot_status: Callable[[], Dict[str, Any]],
                 active_groups: Callable[[], List[Dict[str, Any]]],
                 storage_stats: Optional[Callable[[], Dict[str, Any]]] = None,
                 host: str = "0.0.0.0",
                 port: int = 3000):
        """Initialize status server.

        Args:
            bot_status: Returns the bot's identity and readiness
            active_groups: Returns a snapshot of the live groups
            storage_stats: Returns working storage usage
            host: Interface to bind
            port: Port to bind
        """
        self.bot_status = bot_status
        self.active_groups = active_groups
        self.storage_stats = storage_stats
        self.host = host
        self.port = port
        self.started = time.monotonic()
        self._runner: Optional[web.AppRunner] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.health)
        app.router.add_get("/status", self.status)
        return app

    async def health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "online",
            "bot": f"Scribe v{__version__}",
            "message": "Bot is listening...",
            "timestamp": _now_iso(),
        })

    async def status(self, request: web.Request) -> web.Response:
        body = {
            "bot": self.bot_status(),
            "uptime": round(time.monotonic() - self.started, 1),
            "groups": self.active_groups(),
            "timestamp": _now_iso(),
        }
        if self.storage_stats is not None:
            body["storage"] = self.storage_stats()
        return web.json_response(body)

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"Status server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Status server stopped")
