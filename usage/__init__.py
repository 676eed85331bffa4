"""Usage history and reporting sinks."""
