"""
Repository Models Package.

Declarative base and mixins for entities managed by repositories.
"""

from repository.models.base import Base, TimestampMixin

__all__ = [
    "Base",
    "TimestampMixin",
]
