"""Management CLI package."""
