"""Bot server -- app factory and entry point."""

from __future__ import annotations

import importlib
import logging
from typing import Any

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger

from .. import __version__
from ..config.settings import cfg
from ..messaging.commands import Command, CommandRegistry, Dispatcher, command_from_record
from ..services.otel import configure_otel, quiet_noisy_loggers, shutdown_otel
from .bot_endpoint import BotEndpoint

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/health"})


class QuietAccessLogger(AbstractAccessLogger):
    """Demotes health-check entries to DEBUG."""

    def log(self, request: web.BaseRequest, response: web.StreamResponse, time: float) -> None:
        level = logging.DEBUG if request.path in _QUIET_PATHS else logging.INFO
        self.logger.log(
            level,
            "%s %s %s %s %.3fs",
            request.remote,
            request.method,
            request.path,
            response.status,
            time,
        )


def create_adapter() -> object:
    from botbuilder.core import BotFrameworkAdapter, BotFrameworkAdapterSettings, TurnContext
    from botbuilder.schema import Activity, ActivityTypes

    settings = BotFrameworkAdapterSettings(
        app_id=cfg.bot_app_id or None,
        app_password=cfg.bot_app_password or None,
        channel_auth_tenant=cfg.bot_app_tenant_id or None,
    )
    adapter = BotFrameworkAdapter(settings)

    async def on_error(context: TurnContext, error: Exception) -> None:
        logger.error("Bot turn error: %s", error, exc_info=True)
        try:
            await context.send_activity(
                Activity(type=ActivityTypes.message, text="An error occurred.", text_format="plain")
            )
        except Exception:
            logger.debug("Failed to send turn error notice", exc_info=True)

    adapter.on_turn_error = on_error
    return adapter


def load_commands(module_path: str) -> list[Command]:
    """Import *module_path* and return its ``commands`` as :class:`Command` objects.

    Entries that are not already :class:`Command` instances go through
    :func:`command_from_record`.
    """
    module = importlib.import_module(module_path)
    records = getattr(module, "commands", None)
    if records is None:
        raise ValueError(f"Module {module_path!r} does not define 'commands'")
    loaded = [r if isinstance(r, Command) else command_from_record(r) for r in records]
    logger.info("[commands.load] %d command(s) from %s", len(loaded), module_path)
    return loaded


def build_dispatcher(module_path: str | None = None) -> Dispatcher:
    return Dispatcher(CommandRegistry(load_commands(module_path or cfg.commands_module)))


def _health(bot: Any) -> Any:
    async def handler(_req: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "version": __version__,
            "commands": len(bot.dispatcher.commands),
            "prompts": len(bot.dispatcher.prompts),
        })

    return handler


def create_app(
    *,
    adapter: Any | None = None,
    dispatcher: Dispatcher | None = None,
) -> web.Application:
    from ..messaging.bot import Bot

    adapter = adapter if adapter is not None else create_adapter()
    bot = Bot(dispatcher or build_dispatcher())
    bot.adapter = adapter

    app = web.Application()
    app["bot"] = bot
    BotEndpoint(adapter, bot).register(app.router)
    app.router.add_get("/health", _health(bot))

    async def on_startup(_app: web.Application) -> None:
        configure_otel(cfg.otel_connection_string)

    async def on_cleanup(_app: web.Application) -> None:
        await bot.drain()
        shutdown_otel()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="chatgate bot server")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: BOT_PORT).")
    parser.add_argument(
        "--commands",
        default=None,
        help="Dotted module path exposing a 'commands' list (default: CHATGATE_COMMANDS).",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )
    quiet_noisy_loggers()
    cfg.reload()
    cfg.ensure_dirs()

    port = args.port or cfg.bot_port
    if not cfg.bot_app_id:
        logger.warning("BOT_APP_ID is not set; replies cannot be delivered")
    logger.info("Starting chatgate %s on port %d ...", __version__, port)

    app = create_app(dispatcher=build_dispatcher(args.commands))
    web.run_app(app, host="0.0.0.0", port=port, access_log_class=QuietAccessLogger)


if __name__ == "__main__":
    main()
