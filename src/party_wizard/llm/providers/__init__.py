"""Model provider implementations."""
