"""Shared model mixins used across slices."""

from app.shared.models import OwnedMixin, TimestampMixin

__all__ = ["OwnedMixin", "TimestampMixin"]
