"""Fee collection and dues reporting."""
