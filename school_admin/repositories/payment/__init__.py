"""payment repositories."""
