"""school repositories."""
