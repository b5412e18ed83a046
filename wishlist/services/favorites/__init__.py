"""Favorites domain components split by responsibility.

:class:`FavoritesSet` is the pure bounded-set model, :class:`FavoritesPersistence`
bridges it to an injected storage collaborator, and the normalization helpers
turn heterogeneous inputs into identifiers. The orchestrating service lives in
:mod:`wishlist.services.favorites_service`.
"""

from .model import FavoritesSet
from .normalization import IdentifierNormalizer, normalize_id
from .persistence import FavoritesPersistence, has_storage_capabilities
from .scheduling import DelayedTask

__all__ = [
    "DelayedTask",
    "FavoritesPersistence",
    "FavoritesSet",
    "IdentifierNormalizer",
    "has_storage_capabilities",
    "normalize_id",
]
