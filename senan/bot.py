# Senan: Discord entry point.
# One discord.Client runs the command router; the dashboard API is served by
# uvicorn on the same event loop so its publish route can post to Discord.
#
# Usage:
#   senan            (console script)
#   python -m senan.bot

import asyncio
import logging

import discord
import uvicorn

from senan import __version__
from senan.commands import router
from senan.config import Settings, setup_logging
from senan.context import BotContext
from senan.dashboard import create_app

logger = logging.getLogger(__name__)


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.members = True
    return intents


class SenanBot(discord.Client):

    def __init__(self, context: BotContext):
        super().__init__(intents=build_intents())
        self.context = context
        self.dashboard = None
        self._dashboard_task = None

    async def setup_hook(self) -> None:
        self.context.monitor.start()
        settings = self.context.settings
        if settings.dashboard_enabled:
            config = uvicorn.Config(
                create_app(self.context),
                host=settings.dashboard_host,
                port=settings.dashboard_port,
                log_config=None,
                log_level="warning",
            )
            self.dashboard = uvicorn.Server(config)
            self._dashboard_task = asyncio.create_task(self.dashboard.serve())
            logger.info("Dashboard listening on http://%s:%d", settings.dashboard_host, settings.dashboard_port)

    async def on_ready(self) -> None:
        context = self.context
        logger.info(
            "%s v%s logged in as %s (%s) in %d guild(s); profile %s, %d knowledge document(s)",
            context.settings.bot_name, __version__, self.user, self.user.id, len(self.guilds),
            context.active_profile.key, len(context.knowledge.load_all()),
        )

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        await router.dispatch(message, self.context)

    async def close(self) -> None:
        self.context.monitor.stop()
        if self.dashboard is not None:
            self.dashboard.should_exit = True
            await self._dashboard_task
        await super().close()


def main():
    settings = Settings.from_env()
    setup_logging(settings.logs_dir)
    if not settings.discord_token:
        raise SystemExit("DISCORD_TOKEN is not set (see .env.example)")
    if not settings.anthropic_api_key:
        raise SystemExit("ANTHROPIC_API_KEY is not set (see .env.example)")

    context = BotContext.from_settings(settings)
    context.profiles.initialize_defaults()
    bot = SenanBot(context)
    context.client = bot
    # log_handler=None: setup_logging() already configured the root logger
    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
