"""Infrastructure adapters: logging, events, metrics, database."""
