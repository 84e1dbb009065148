"""Reference data services."""
