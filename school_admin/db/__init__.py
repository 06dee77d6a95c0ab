"""Database package: engine, sessions and schema bootstrap."""
