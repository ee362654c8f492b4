"""Typed configuration loader for metricscope."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from .contracts.error import BadInputError

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUTHY:
            return True
        if normalized in _FALSY:
            return False
        raise BadInputError(f"{key} must be boolean")
    return bool(value)


def _optional_int(raw: str) -> int | None:
    if raw.strip().lower() in {"", "none", "off", "unbounded"}:
        return None
    return int(raw)


@dataclass
class ScrapeSettings:
    endpoint: str | None = None
    metric: str | None = None
    poll_interval: float = 2.0
    timeout: float = 10.0

    def validate(self) -> None:
        if self.endpoint is not None:
            parsed = urlparse(self.endpoint)
            if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
                raise BadInputError("scrape.endpoint must be an http(s) URL with a host")
        if self.metric is not None and not self.metric.strip():
            raise BadInputError("scrape.metric must not be blank when set")
        if self.poll_interval <= 0:
            raise BadInputError("scrape.poll_interval must be > 0")
        if self.timeout <= 0:
            raise BadInputError("scrape.timeout must be > 0")


@dataclass
class ViewSettings:
    history_limit: int | None = None
    revert_series_on_cancel: bool = True
    show_legend: bool = False

    def validate(self) -> None:
        if self.history_limit is not None and self.history_limit <= 0:
            raise BadInputError("view.history_limit must be > 0 when set")


@dataclass
class AppConfig:
    scrape: ScrapeSettings = field(default_factory=ScrapeSettings)
    view: ViewSettings = field(default_factory=ViewSettings)

    @classmethod
    def load(cls, path: Path | None) -> AppConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise BadInputError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise BadInputError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        scrape_data = data.get("scrape", {})
        if not isinstance(scrape_data, dict):
            raise BadInputError("[scrape] section must be a table")
        view_data = data.get("view", {})
        if not isinstance(view_data, dict):
            raise BadInputError("[view] section must be a table")
        try:
            scrape = ScrapeSettings(**scrape_data)
        except TypeError as exc:
            raise BadInputError(f"Unknown key in [scrape]: {exc}") from exc
        for key in ("poll_interval", "timeout"):
            value = getattr(scrape, key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise BadInputError(f"scrape.{key} must be a number")
            setattr(scrape, key, float(value))

        view_kwargs: dict[str, Any] = {}
        for key in ("revert_series_on_cancel", "show_legend"):
            if key in view_data:
                view_kwargs[key] = _coerce_bool(f"view.{key}", view_data[key])
        if "history_limit" in view_data:
            raw_limit = view_data["history_limit"]
            if raw_limit is None or isinstance(raw_limit, str):
                try:
                    view_kwargs["history_limit"] = _optional_int(raw_limit or "")
                except ValueError as exc:
                    raise BadInputError("view.history_limit must be an integer or 'none'") from exc
            elif isinstance(raw_limit, int) and not isinstance(raw_limit, bool):
                view_kwargs["history_limit"] = raw_limit
            else:
                raise BadInputError("view.history_limit must be an integer or 'none'")
        unknown = set(view_data) - {"history_limit", "revert_series_on_cancel", "show_legend"}
        if unknown:
            raise BadInputError(f"Unknown key(s) in [view]: {', '.join(sorted(unknown))}")
        return cls(scrape=scrape, view=ViewSettings(**view_kwargs))

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        scrape_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "METRICSCOPE_ENDPOINT": ("endpoint", str),
            "METRICSCOPE_METRIC": ("metric", str),
            "METRICSCOPE_POLL_INTERVAL": ("poll_interval", float),
            "METRICSCOPE_TIMEOUT": ("timeout", float),
        }
        for key, (attr, caster) in scrape_mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.scrape, attr, value)

        raw_limit = env.get("METRICSCOPE_HISTORY_LIMIT")
        if raw_limit is not None:
            try:
                self.view.history_limit = _optional_int(raw_limit)
            except ValueError as exc:
                raise BadInputError(
                    f"Invalid env override METRICSCOPE_HISTORY_LIMIT={raw_limit!r}"
                ) from exc

        raw_legend = env.get("METRICSCOPE_SHOW_LEGEND")
        if raw_legend is not None:
            self.view.show_legend = _coerce_bool("METRICSCOPE_SHOW_LEGEND", raw_legend)

    def validate(self) -> None:
        self.scrape.validate()
        self.view.validate()


def load_app_config(path: str | None) -> AppConfig:
    config_path = Path(path) if path else None
    return AppConfig.load(config_path)


__all__ = ["AppConfig", "ScrapeSettings", "ViewSettings", "load_app_config"]
