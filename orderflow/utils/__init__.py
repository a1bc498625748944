"""Small helpers shared across orderflow."""
