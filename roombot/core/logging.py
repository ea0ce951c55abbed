import logging
import os
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# Moderation events (rank/cooldown changes, enable/disable, discipline)
MOD_LOGGER_NAME = "Bot.Mod"

# Third-party loggers that are too chatty below WARNING
QUIET_LOGGERS = ("aiohttp.access", "asyncpg")


class ModPrefixFilter(logging.Filter):
    """Tag moderation records so they stand out in the shared console."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == MOD_LOGGER_NAME and not getattr(record, "mod_tagged", False):
            record.msg = f"[MOD] {record.msg}"
            record.mod_tagged = True
        return True


def _console_handler() -> logging.Handler:
    rich_handler = RichHandler(
        console=Console(force_terminal=True, width=120),
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        tracebacks_width=120,
    )
    rich_handler.setFormatter(
        logging.Formatter(fmt="%(name)s: %(message)s", datefmt="[%Y-%m-%d %H:%M:%S]")
    )
    return rich_handler


def _mod_file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter(fmt="%(asctime)s %(message)s", datefmt="[%Y-%m-%d %H:%M:%S]")
    )
    return handler


def setup_logging(log_level: str | None = None, mod_log_file: Path | None = None) -> None:
    """Configure the root logger once; optionally mirror ``Bot.Mod`` to a file."""
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, log_level, logging.INFO)

    try:
        handler = _console_handler()
        handler.addFilter(ModPrefixFilter())
        logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)
    except Exception as e:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            force=True,
        )
        logging.getLogger("Bot").warning(f"Failed to setup Rich logging: {e}, using standard logging")

    mod_logger = logging.getLogger(MOD_LOGGER_NAME)
    for old in [h for h in mod_logger.handlers if isinstance(h, logging.FileHandler)]:
        mod_logger.removeHandler(old)
        old.close()
    if mod_log_file is not None:
        try:
            mod_logger.addHandler(_mod_file_handler(mod_log_file))
        except OSError as e:
            logging.getLogger("Bot").error(f"Cannot open moderation log {mod_log_file}: {e}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.INFO if level == logging.DEBUG else logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.ERROR)
