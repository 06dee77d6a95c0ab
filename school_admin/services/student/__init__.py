"""student services."""
