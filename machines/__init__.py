"""Laundry machines: models, registry, timers, and transitions."""
