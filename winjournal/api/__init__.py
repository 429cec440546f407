"""HTTP surface for the win journal."""
