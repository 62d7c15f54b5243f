"""
SEOgen Receiver - Content stores.

Usage:
    from seogen_receiver.stores import ContentDraft, InMemoryContentStore
"""

from .base import ContentDraft, ContentItem, ContentStore, ContentStoreError, LIVE_STATUSES
from .memory import InMemoryContentStore

__all__ = [
    "ContentDraft",
    "ContentItem",
    "ContentStore",
    "ContentStoreError",
    "InMemoryContentStore",
    "LIVE_STATUSES",
]
