"""Infrastructure adapters for the damauth core protocols."""
