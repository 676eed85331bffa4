"""Background tasks that keep the shared state converging."""
