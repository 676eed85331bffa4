"""Function usage tracking."""

from .runtime import t

__all__ = ["t"]
