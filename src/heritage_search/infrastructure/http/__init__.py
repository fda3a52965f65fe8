"""HTTP Transport."""

from .client import (
    DEFAULT_TTL,
    DEFAULT_WORKER_BASE,
    HttpTransport,
    normalize_param,
    read_sample,
)

__all__ = [
    "DEFAULT_TTL",
    "DEFAULT_WORKER_BASE",
    "HttpTransport",
    "normalize_param",
    "read_sample",
]
