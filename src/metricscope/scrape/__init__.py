"""Scraping and parsing of text exposition endpoints."""

from .client import ScrapeClient, discover_metric_names, fetch_series, validated_endpoint
from .parser import ParsedSample, Sample, base_name, label_block, parse_line

__all__ = [
    "ParsedSample",
    "Sample",
    "ScrapeClient",
    "base_name",
    "discover_metric_names",
    "fetch_series",
    "label_block",
    "parse_line",
    "validated_endpoint",
]
