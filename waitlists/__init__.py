"""Waitlists per machine type."""
