"""Expose ORM models at package level."""

from .base import Base  # noqa: F401
from .recipe_cache import RecipeCacheEntry  # noqa: F401
