"""Terminal explorer for metrics endpoints in the text exposition format."""

from . import config, contracts, core, scrape, tui

__version__ = "0.1.0"

__all__ = [
    "config",
    "contracts",
    "core",
    "scrape",
    "tui",
]
