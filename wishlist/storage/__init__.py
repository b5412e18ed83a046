"""Storage collaborators and key/value contexts for persisted favorites."""

from .availability import AvailabilityLoader
from .favorites import AvailabilityFavoritesStorage, FavoritesStorage
from .memory import KeyValueContext, SharedKeyValueStore

__all__ = [
    "AvailabilityFavoritesStorage",
    "AvailabilityLoader",
    "FavoritesStorage",
    "KeyValueContext",
    "SharedKeyValueStore",
]
