"""Payment recording and allocation services."""
