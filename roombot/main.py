import asyncio
import logging
import sys

from pydantic import ValidationError

from roombot.core import Bot, ConsoleConnection, HealthCheckServer, get_settings, setup_logging
from roombot.core.console import run_console
from roombot.shared.database import DatabaseManager
from roombot.shared.repositories import (
    JsonSettingsRepository,
    PgSettingsRepository,
    SettingsLoadError,
    SettingsRepository,
)

LOGGER: logging.Logger = logging.getLogger("Bot")


def main() -> None:
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging()
        LOGGER.error(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(settings.log_level, settings.mod_log_file)

    async def runner() -> None:
        database: DatabaseManager | None = None
        health: HealthCheckServer | None = None
        repository: SettingsRepository

        if settings.database_url:
            database = DatabaseManager(settings.database_url)
            await database.connect()
            pg_repository = PgSettingsRepository(database.pool)
            await pg_repository.ensure_schema()
            repository = pg_repository
        else:
            repository = JsonSettingsRepository(
                settings.data_dir, per_room=settings.use_channel_settings_file
            )

        bot = Bot(settings, connection=ConsoleConnection(), repository=repository)
        try:
            await bot.setup()
            # No real session: the console plays the room with the bot as owner
            bot.event_login({"success": True, "name": settings.username or "roombot"})
            bot.event_set_permissions({"chat": bot.ranks.GUEST})
            bot.event_rank(bot.ranks.OWNER)
            bot.event_add_user({"name": bot.username, "rank": bot.ranks.OWNER})

            if settings.health_port:
                health = HealthCheckServer(bot, port=settings.health_port, database=database)
                await health.start()

            LOGGER.info(f"Room bot ready in {settings.room} as {bot.username}")
            await run_console(bot)
        finally:
            bot.kill("shutting down")
            await bot.drain()
            if health is not None:
                await health.stop()
            if database is not None:
                await database.disconnect()

    try:
        asyncio.run(runner())
    except SettingsLoadError as e:
        LOGGER.error(f"Could not load room settings, refusing to start: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
