"""Chat command sets. Each module exposes ``get_commands(bot) -> CommandSet``."""
