"""Component loading: import command-set modules and collect their overlays."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable
from typing import Any

from .registry import OverlaySource

LOGGER = logging.getLogger("Bot.Loader")


def _is_missing(exc: ModuleNotFoundError, module_name: str) -> bool:
    """True if ``module_name`` itself (not one of its imports) does not exist."""
    return exc.name is not None and (
        module_name == exc.name or module_name.startswith(f"{exc.name}.")
    )


def load_command_set(module_name: str, bot: Any, *, required: bool = True) -> object | None:
    """Import ``module_name`` and return what its ``get_commands(bot)`` builds.

    A missing module that is not required returns None silently. Import errors
    and failures inside ``get_commands`` are logged and skipped.
    """
    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        if not _is_missing(e, module_name):
            LOGGER.exception(f"Failed to import component {module_name}: {e}")
        elif required:
            LOGGER.error(f"Could not find command set {module_name}")
        else:
            LOGGER.debug(f"No command set {module_name}, skipping")
        return None
    except Exception as e:
        LOGGER.exception(f"Failed to import component {module_name}: {e}")
        return None

    get_commands = getattr(module, "get_commands", None)
    if not callable(get_commands):
        LOGGER.error(f"Component {module_name} has no get_commands(bot)")
        return None

    try:
        return get_commands(bot)
    except Exception as e:
        LOGGER.exception(f"Failed to build commands from {module_name}: {e}")
        return None


def collect_sources(
    modules: Iterable[tuple[str, bool]],
    bot: Any,
    *,
    start_priority: int = 0,
) -> list[OverlaySource]:
    """Load ``(module_name, required)`` pairs in order as prioritized overlays."""
    sources: list[OverlaySource] = []
    for offset, (module_name, required) in enumerate(modules):
        payload = load_command_set(module_name, bot, required=required)
        if payload is None:
            continue
        sources.append(OverlaySource(start_priority + offset, module_name, payload))
        LOGGER.info(f"Loaded command set {module_name}")
    return sources
