"""Shared state storage."""
