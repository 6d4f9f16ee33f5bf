"""Shared SQLAlchemy models registry for the workspace database.

Currently holds the key-value slot table used by ``finance_pipeline`` storage.
"""

from .kv import Base, KvSlot

__all__ = [
    "Base",
    "KvSlot",
]
