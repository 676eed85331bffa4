"""HTTP surface of the laundry coordinator."""

from webapp.app import create_app

__all__ = ['create_app']
