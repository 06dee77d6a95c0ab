"""base repositories."""
