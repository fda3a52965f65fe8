"""Provider adapter base."""

from .base_source import SearchSource, ensure_https, to_list

__all__ = ["SearchSource", "ensure_https", "to_list"]
