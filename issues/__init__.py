"""Reported machine issues."""
