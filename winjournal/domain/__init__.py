"""Domain layer: entry store, statistics and sessions."""
