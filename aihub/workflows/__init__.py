"""Background workflows."""
