"""
Haven collection names and index setup.
"""

from haven.database.indexes import ensure_indexes
from haven.database import collections

__all__ = ["ensure_indexes", "collections"]
