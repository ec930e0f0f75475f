"""
Providers package - Upstream HTTP collaborators.
"""

from artist_timeline.providers.activity import ActivityProvider
from artist_timeline.providers.base import BaseProvider
from artist_timeline.providers.names import NameResolver


__all__ = [
    "ActivityProvider",
    "BaseProvider",
    "NameResolver",
]
