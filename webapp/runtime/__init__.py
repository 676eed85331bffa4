"""Runtime helpers for the laundry service."""

from .lifecycle import LifecycleManager

__all__ = ['LifecycleManager']
