"""invoice repositories."""
