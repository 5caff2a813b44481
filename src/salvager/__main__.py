import asyncio
import logging
import logging.handlers
import os
import sys

import discord
import nest_asyncio
from discord.ext import commands
from dotenv import load_dotenv

from .commands import cogs

logger = logging.getLogger("discord")

nest_asyncio.apply()

COMMAND_PREFIX = "%"
LOG_FILE = "salvager.log"


def init_logging():
    logger.setLevel(logging.INFO)
    logging.getLogger("discord.http").setLevel(logging.WARNING)
    package_logger = logging.getLogger("salvager")
    package_logger.setLevel(logging.DEBUG)

    handler = logging.handlers.RotatingFileHandler(
        filename=os.getenv("SALVAGER_LOG_FILE", LOG_FILE),
        encoding="utf-8",
        maxBytes=32 * 1024 * 1024,  # 32 MiB
        backupCount=5,
    )
    handler.setFormatter(
        logging.Formatter(
            "[{asctime}] [{levelname:<8}] {name}: {message}",
            "%Y-%m-%d %H:%M:%S",
            style="{",
        )
    )
    # bot and planner records share one file
    for target in (logger, package_logger):
        target.addHandler(handler)


def load_settings() -> str:
    """Load .env and return the discord token, exiting if it is missing."""
    load_dotenv()
    token = os.getenv("DISCORD_TOKEN")
    if not token:
        logger.error("DISCORD_TOKEN is not set")
        sys.exit("DISCORD_TOKEN is not set; add it to the environment or .env")
    if os.getenv("ARC_DB_PATH"):
        logger.info("using sqlite catalog at %s", os.getenv("ARC_DB_PATH"))
    else:
        logger.info("item catalog will be fetched from arctracker on first use")
    return token


def build_bot() -> commands.Bot:
    # message content is needed for prefix commands
    intents = discord.Intents.default()
    intents.message_content = True
    return commands.Bot(intents=intents, command_prefix=COMMAND_PREFIX)


async def main():
    init_logging()
    token = load_settings()
    bot = build_bot()
    async with bot:
        for cog in cogs:
            logger.info("Initializing: %s", cog.__name__)
            await bot.add_cog(cog(bot))
        bot.run(token)


if __name__ == "__main__":
    asyncio.run(main())
