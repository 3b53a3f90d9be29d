"""Install analytics service."""
