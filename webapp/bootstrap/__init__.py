"""Bootstrap helpers for the laundry service runtime."""

from .container import LaundryDependencies, build_dependencies

__all__ = ['LaundryDependencies', 'build_dependencies']
