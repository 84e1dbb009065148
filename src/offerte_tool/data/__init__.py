"""Reference data loading."""
