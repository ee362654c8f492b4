"""Command line interface for metricscope."""

from .app import build_parser, configure_logging, main, run

__all__ = ["build_parser", "configure_logging", "main", "run"]
