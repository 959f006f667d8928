import asyncio
import logging
import os
from typing import Optional, List

import discord
from discord import Intents
from discord.ext import commands
from dotenv import load_dotenv

from srbot.database.db_service import DBService
from srbot.database.user_flags_crud import UserFlagStore
from srbot.services.config_service import ConfigService, RollSettings

logger = logging.getLogger(__name__)

COG_LIST = [
    "srbot.command_modules.roll_cmds",
]


class SRBot(commands.Bot):
    def __init__(self, roll_settings: RollSettings, db_service: DBService, command_prefix: str,
                 intents: Intents, debug_guild_ids: Optional[List[int]] = None):
        super().__init__(command_prefix=command_prefix, intents=intents)
        self.roll_settings = roll_settings
        self.db_service = db_service
        self.flag_store = UserFlagStore(db_service.get_session_factory())
        self.debug_guild_ids = debug_guild_ids

    async def setup_hook(self):
        await self.db_service.initialize_database()
        for cog_name in COG_LIST:
            try:
                await self.load_extension(cog_name)
                logger.info(f"SRBot: loaded cog '{cog_name}'.")
            except commands.ExtensionError as e:
                logger.error(f"SRBot: failed to load cog '{cog_name}': {e}", exc_info=True)

        if self.debug_guild_ids:
            for guild_id in self.debug_guild_ids:
                guild = discord.Object(id=guild_id)
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
            logger.info(f"SRBot: commands synced to test guilds {self.debug_guild_ids}.")
        else:
            await self.tree.sync()
            logger.info("SRBot: commands synced globally.")

    async def on_ready(self):
        logger.info(f"SRBot: logged in as {self.user} in {len(self.guilds)} guild(s).")

    async def close(self):
        await super().close()
        await self.db_service.close()


async def start_bot() -> None:
    load_dotenv()
    config_service = ConfigService()
    roll_settings = config_service.get_roll_settings()

    token = os.getenv("DISCORD_TOKEN")
    if not token:
        logger.critical("DISCORD_TOKEN is not set (environment or .env). Cannot start bot.")
        return

    test_guild_ids_str = os.getenv("TEST_GUILD_IDS")
    test_guild_ids = [int(gid.strip()) for gid in test_guild_ids_str.split(",") if gid.strip()] if test_guild_ids_str else None

    bot = SRBot(
        roll_settings=roll_settings,
        db_service=DBService(roll_settings.database_url),
        command_prefix=os.getenv("COMMAND_PREFIX", "!"),
        intents=Intents.default(),
        debug_guild_ids=test_guild_ids,
    )
    try:
        await bot.start(token)
    except discord.errors.LoginFailure:
        logger.error("SRBot: invalid Discord token. Please check DISCORD_TOKEN.")
    finally:
        if not bot.is_closed():
            await bot.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(start_bot())
    except KeyboardInterrupt:
        logger.info("SRBot: interrupted, shutting down.")
