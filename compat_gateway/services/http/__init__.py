"""Shared HTTP client for upstream lookups."""

from compat_gateway.services.http.client import HTTPClientManager

__all__ = ["HTTPClientManager"]
