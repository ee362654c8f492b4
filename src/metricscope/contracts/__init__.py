"""Contract helpers for metricscope."""

from .error import (
    BadInputError,
    EndpointError,
    EnvelopeError,
    ErrorEnvelope,
    Exit,
    IOErrorEnvelope,
    MetricNotFoundError,
    PolicyError,
    ScrapeError,
    die,
    guard_cli,
)

__all__ = [
    "Exit",
    "ErrorEnvelope",
    "EnvelopeError",
    "BadInputError",
    "PolicyError",
    "IOErrorEnvelope",
    "ScrapeError",
    "EndpointError",
    "MetricNotFoundError",
    "guard_cli",
    "die",
]
