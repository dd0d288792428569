"""Outbound HTTP integration helpers."""

from coverspot.infrastructure.integrations.http_pool import HttpClientPool

__all__ = ["HttpClientPool"]
