"""Reusable middleware handlers."""

from .cache import ResponseCache
from .rest import RestFetcher

__all__ = ["ResponseCache", "RestFetcher"]
