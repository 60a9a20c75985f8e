"""Built-in defaults and option tables."""

from .constants import DEFAULT_SETTINGS

__all__ = ["DEFAULT_SETTINGS"]
