"""Command line entry point for metricscope."""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import os
from collections.abc import Sequence
from logging.handlers import RotatingFileHandler
from typing import Any

from metricscope.config import AppConfig, load_app_config
from metricscope.contracts.error import BadInputError, guard_cli
from metricscope.scrape.client import ScrapeClient

# --------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------
logger = logging.getLogger("metricscope")
logger.setLevel(logging.INFO)
logger.propagate = False

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUP_COUNT = 5
DEBUG_LOG_FILE = "debug.log"


class JsonFormatter(logging.Formatter):
    """Render log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, DEFAULT_LOG_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    use_json: bool = False,
    log_file: str | None = None,
    *,
    stream: bool = True,
    level: int = logging.INFO,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> None:
    """Configure console (and optional rotating file) logging.

    The TUI owns the terminal while it runs, so callers pass ``stream=False`` and
    rely on ``log_file`` for diagnostics.
    """

    formatter: logging.Formatter
    if use_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_LOG_DATEFMT)

    for handler in list(logger.handlers):
        with contextlib.suppress(Exception):
            handler.close()
        logger.removeHandler(handler)
    logger.setLevel(level)

    if stream:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    if log_file:
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())


def emit_success(
    command: str, *, text: str | None = None, data: dict[str, Any] | None = None, as_json: bool
) -> None:
    if as_json:
        payload: dict[str, Any] = {"ok": True, "command": command}
        if data:
            payload.update(data)
        if text is not None and "result" not in payload:
            payload["result"] = text
        print(json.dumps(payload, ensure_ascii=False))
    elif text is not None:
        print(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metricscope",
        description="Terminal explorer for metrics endpoints in the text exposition format.",
    )
    parser.add_argument(
        "url",
        nargs="?",
        default=None,
        help="Metrics endpoint URL, e.g. http://127.0.0.1:9100/metrics",
    )
    parser.add_argument(
        "--metric",
        default=None,
        help="Metric to visualise (default: first metric the endpoint exports)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between scrapes (default: 2.0)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="HTTP timeout in seconds (default: 10.0)",
    )
    parser.add_argument(
        "--history-limit",
        type=int,
        default=None,
        help="Keep at most N points per series (default: unbounded)",
    )
    parser.add_argument("--config", default=None, help="Optional TOML config file")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON records")
    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to a rotating file (DEBUG=1 implies ./debug.log)",
    )
    parser.add_argument(
        "--list-metrics",
        action="store_true",
        help="Print the metric names exported by the endpoint and exit",
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output for --list-metrics"
    )
    return parser


def resolve_config(args: argparse.Namespace) -> AppConfig:
    """Layer CLI flags over the TOML file and environment overrides."""

    cfg = load_app_config(args.config)
    if args.url is not None:
        cfg.scrape.endpoint = args.url
    if args.metric is not None:
        cfg.scrape.metric = args.metric
    if args.interval is not None:
        cfg.scrape.poll_interval = args.interval
    if args.timeout is not None:
        cfg.scrape.timeout = args.timeout
    if args.history_limit is not None:
        cfg.view.history_limit = args.history_limit
    cfg.validate()
    if cfg.scrape.endpoint is None:
        raise BadInputError(
            "A metrics endpoint URL is required",
            hint="Pass it as the first argument or set METRICSCOPE_ENDPOINT.",
        )
    return cfg


def select_initial_metric(client: ScrapeClient, metric: str | None) -> str:
    if metric:
        return metric
    names = client.discover_metric_names()
    if not names:
        raise BadInputError("no metrics found at the endpoint")
    logger.info("No metric given; defaulting to %s", names[0])
    return names[0]


@guard_cli
def run(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    log_file = args.log_file or (DEBUG_LOG_FILE if os.getenv("DEBUG") else None)
    level = logging.DEBUG if os.getenv("DEBUG") else logging.INFO
    configure_logging(use_json=args.log_json, log_file=log_file, stream=False, level=level)

    cfg = resolve_config(args)
    endpoint = cfg.scrape.endpoint or ""
    client = ScrapeClient(endpoint, timeout=cfg.scrape.timeout)

    if args.list_metrics:
        names = client.discover_metric_names()
        emit_success(
            "list-metrics",
            text="\n".join(names),
            data={"endpoint": endpoint, "metrics": names},
            as_json=args.json,
        )
        return 0

    metric = select_initial_metric(client, cfg.scrape.metric)

    from metricscope.tui.app import run_app
    from metricscope.tui.state import Session

    session = Session(
        endpoint=endpoint,
        current_metric=metric,
        poll_interval=cfg.scrape.poll_interval,
        history_limit=cfg.view.history_limit,
        revert_series_on_cancel=cfg.view.revert_series_on_cancel,
        show_legend=cfg.view.show_legend,
    )
    logger.info("Watching %s at %s every %.1fs", metric, endpoint, cfg.scrape.poll_interval)
    run_app(session, client)
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    raise SystemExit(run(argv))


__all__ = [
    "JsonFormatter",
    "build_parser",
    "configure_logging",
    "emit_success",
    "main",
    "resolve_config",
    "run",
    "select_initial_metric",
]
