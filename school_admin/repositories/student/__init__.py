"""student repositories."""
