"""Bot Framework webhook -- /api/messages."""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web
from botbuilder.schema import Activity

logger = logging.getLogger(__name__)


class BotEndpoint:
    """Receives activities from the Bot Framework channel service."""

    def __init__(self, adapter: Any, bot: Any) -> None:
        self.adapter = adapter
        self._bot = bot

    def register(self, router: web.UrlDispatcher) -> None:
        router.add_post("/api/messages", self._messages)

    async def _messages(self, req: web.Request) -> web.Response:
        if "application/json" not in req.headers.get("Content-Type", ""):
            return web.Response(status=415)

        try:
            body = await req.json()
        except ValueError:
            return web.json_response({"status": "error", "message": "Invalid JSON"}, status=400)

        activity = Activity().deserialize(body)
        auth_header = req.headers.get("Authorization", "")

        try:
            response = await self.adapter.process_activity(
                activity, auth_header, self._bot.on_turn,
            )
        except PermissionError:
            logger.warning("[bot.endpoint] rejected activity: unauthorized")
            return web.Response(status=401)
        except Exception:
            logger.error("[bot.endpoint] failed to process activity", exc_info=True)
            return web.Response(status=500)

        if response is not None:
            return web.json_response(data=response.body, status=response.status)
        return web.Response(status=201)
