"""transport services."""
