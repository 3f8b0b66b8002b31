"""Storage backends for links, clicks and the link cache."""

from shortener.storage.memory import InMemoryCache, InMemoryClickStore, InMemoryLinkStore

__all__ = ["InMemoryCache", "InMemoryClickStore", "InMemoryLinkStore"]
