"""Entry points into damauth."""
