"""
Bouncer Discord Bot
===================

Entry point: loads configuration and the bot token, opens the database,
wires the moderation workflow into the Discord client and runs it.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. BOUNCER_HOME environment variable, if set.
    2. The executable's directory when running frozen (PyInstaller, Nuitka).
    3. Otherwise the repository root (two levels above this package).
    """
    if env_home := os.getenv("BOUNCER_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import discord
from dotenv import load_dotenv

from bouncer.bot.discord_gateway import DiscordGateway
from bouncer.command.command_router import CommandRouter
from bouncer.configuration.app_configuration import AppConfig
from bouncer.database.db_connection import ConnectionManager
from bouncer.database.db_schema import VERIFICATION_TABLE, WHITELIST_TABLE
from bouncer.database.kv_store import KeyValueStore
from bouncer.moderation.moderation_workflow import ModerationWorkflow
from bouncer.moderation.verification_ledger import VerificationLedger
from bouncer.moderation.whitelist import Whitelist
from bouncer.util.logger import get_logger, handle_exception, set_console_level


logger = get_logger("main")


def load_environment() -> str:
    """Load ``.env`` and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for member joins, member listing and reading text commands."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def build_workflow(config: AppConfig, bot: discord.Bot, connection: ConnectionManager) -> ModerationWorkflow:
    """Assemble the moderation core on top of an open database connection."""
    gateway = DiscordGateway(bot)
    whitelist = Whitelist(KeyValueStore(connection, WHITELIST_TABLE))
    ledger = VerificationLedger(
        KeyValueStore(connection, VERIFICATION_TABLE),
        whitelist,
        gateway,
        code_length=config.verification_code_length,
    )
    return ModerationWorkflow(config, gateway, ledger, whitelist)


def create_bot(config: AppConfig, connection: ConnectionManager) -> tuple[discord.Bot, ModerationWorkflow]:
    """Instantiate the Discord bot and register all cogs."""
    from bouncer.bot.cogs import command_listener, events_listener, member_listener

    bot = discord.Bot(intents=build_intents())
    workflow = build_workflow(config, bot, connection)

    router = CommandRouter()
    workflow.register_commands(router)

    events_listener.setup(bot, config.command_prefix)
    member_listener.setup(bot, workflow)
    command_listener.setup(bot, router, config.command_prefix)
    logger.info("All cogs loaded successfully.")
    return bot, workflow


async def open_database(config: AppConfig) -> ConnectionManager:
    connection = ConnectionManager()
    await connection.open(config.database_path)
    return connection


async def async_main() -> int:
    """Bootstrap the database and the bot, returning an exit code."""
    config = AppConfig(BASE_DIR / "config" / "app_config.yml", token=load_environment(), base_dir=BASE_DIR)
    set_console_level(config.log_level)

    try:
        connection = await open_database(config)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    bot = None
    exit_code = 0
    try:
        bot, _ = create_bot(config, connection)
        logger.info("Attempting to connect to Discord…")
        await bot.start(config.token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    except discord.LoginFailure as exc:
        logger.critical("Discord rejected the bot token: %s", exc)
        exit_code = 1
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        if bot is not None and not bot.is_closed():
            await bot.close()
        await connection.close()
        logger.info("Shutdown complete.")

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    logger.info("Starting Bouncer…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        return code if isinstance(code, int) else 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
