"""Blocking HTTP client that scrapes a text exposition endpoint."""

from __future__ import annotations

import codecs
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from http.client import HTTPException
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from metricscope.contracts.error import BadInputError, EndpointError, MetricNotFoundError

from .parser import Sample, iter_parsed

logger = logging.getLogger(__name__)

_CLIENT_USER_AGENT = "metricscope/1.0"
_ACCEPT = "text/plain;version=0.0.4;q=1.0, */*;q=0.1"
_MAX_RESPONSE_BYTES = 32 * 1024 * 1024  # 32 MiB cap per scrape.
ALLOWED_ENDPOINT_SCHEMES = {"http", "https"}


def validated_endpoint(endpoint: str) -> str:
    parsed = urlparse(endpoint)
    if parsed.scheme.lower() not in ALLOWED_ENDPOINT_SCHEMES:
        raise BadInputError(
            f"Unsupported endpoint scheme '{parsed.scheme}' (allowed: http, https)",
            hint="Pass the full URL, e.g. http://127.0.0.1:9100/metrics",
        )
    if not parsed.netloc:
        raise BadInputError("Endpoint must include a host")
    return endpoint


def _charset_from_content_type(content_type: str) -> str | None:
    """Extract a ``charset`` parameter from ``Content-Type`` if present."""

    if not content_type:
        return None
    for part in content_type.split(";"):
        part = part.strip()
        if part.lower().startswith("charset="):
            charset = part.split("=", 1)[1].strip().strip('"').strip("'")
            if charset:
                return charset
    return None


def _known_encoding(charset: str | None) -> str | None:
    if not charset:
        return None
    try:
        return codecs.lookup(charset).name
    except LookupError:
        logger.debug("Ignoring unknown charset %r", charset)
        return None


def _response_encoding(response: Any) -> str:
    headers = getattr(response, "headers", None)
    charset_getter = getattr(headers, "get_content_charset", None) if headers is not None else None
    if callable(charset_getter):
        detected = charset_getter()
        known = _known_encoding(detected) if isinstance(detected, str) else None
        if known:
            return known
    header_get = getattr(headers, "get", None) if headers is not None else None
    if callable(header_get):
        known = _known_encoding(_charset_from_content_type(header_get("Content-Type", "") or ""))
        if known:
            return known
    return "utf-8"


class ScrapeClient:
    """Issues one GET per call and streams the body through the line parser."""

    def __init__(self, endpoint: str, timeout: float | None = 10.0) -> None:
        self.endpoint = validated_endpoint(endpoint)
        self.timeout = timeout

    def _request(self) -> Request:
        headers = {"Accept": _ACCEPT, "User-Agent": _CLIENT_USER_AGENT}
        return Request(self.endpoint, headers=headers)  # noqa: S310

    @contextmanager
    def _open(self) -> Iterator[Any]:
        try:
            with urlopen(self._request(), timeout=self.timeout) as response:  # nosec B310  # noqa: S310
                status = getattr(response, "status", None)
                if status is None:
                    getcode = getattr(response, "getcode", None)
                    status = getcode() if callable(getcode) else 200
                if not 200 <= int(status) < 300:
                    raise EndpointError(f"unexpected status code: {status}", status=int(status))
                yield response
        except HTTPError as exc:
            raise EndpointError(f"unexpected status code: {exc.code}", status=exc.code) from exc
        except (URLError, HTTPException, TimeoutError, ConnectionError, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            raise EndpointError(f"failed to fetch metrics: {reason}") from exc

    def _iter_lines(self, response: Any) -> Iterator[str]:
        encoding = _response_encoding(response)
        received = 0
        for raw in response:
            received += len(raw)
            if received > _MAX_RESPONSE_BYTES:
                raise EndpointError(
                    f"response exceeded {_MAX_RESPONSE_BYTES} bytes",
                    hint="The endpoint is exporting more data than a single view can hold.",
                )
            if isinstance(raw, bytes | bytearray):
                yield bytes(raw).decode(encoding, errors="replace")
            else:
                yield str(raw)
        # http.client leaves `length` at the bytes still owed when the body ends early.
        remaining = getattr(response, "length", None)
        if isinstance(remaining, int) and remaining > 0:
            raise EndpointError(f"response ended early: {remaining} bytes missing")

    def discover_metric_names(self) -> list[str]:
        """Return the distinct base names exported by the endpoint, sorted."""

        with self._open() as response:
            names = {parsed.name for parsed in iter_parsed(self._iter_lines(response))}
        logger.debug("Discovered %d metric names at %s", len(names), self.endpoint)
        return sorted(names)

    def fetch_series(self, metric: str) -> list[Sample]:
        """Return every sample of ``metric`` in the order the endpoint lists them."""

        with self._open() as response:
            samples = [
                parsed.to_sample()
                for parsed in iter_parsed(self._iter_lines(response))
                if parsed.name == metric
            ]
        if not samples:
            raise MetricNotFoundError(metric)
        return samples


def discover_metric_names(endpoint: str, timeout: float | None = 10.0) -> list[str]:
    return ScrapeClient(endpoint, timeout).discover_metric_names()


def fetch_series(endpoint: str, metric: str, timeout: float | None = 10.0) -> list[Sample]:
    return ScrapeClient(endpoint, timeout).fetch_series(metric)


__all__ = [
    "ALLOWED_ENDPOINT_SCHEMES",
    "ScrapeClient",
    "discover_metric_names",
    "fetch_series",
    "validated_endpoint",
]
