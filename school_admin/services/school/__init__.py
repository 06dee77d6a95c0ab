"""School and setup catalog services."""
