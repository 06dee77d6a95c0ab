"""invoice services."""
