"""Domain models and errors for the navigator core."""
