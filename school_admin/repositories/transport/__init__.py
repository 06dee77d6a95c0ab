"""transport repositories."""
