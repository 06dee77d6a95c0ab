"""fee repositories."""
