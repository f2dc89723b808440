"""BotGlue daemon: per-branch development sandboxes backed by containers."""

__version__ = "0.1.0"
