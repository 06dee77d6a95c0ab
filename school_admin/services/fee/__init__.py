"""Fee structure, generation, forecast and breakdown services."""
