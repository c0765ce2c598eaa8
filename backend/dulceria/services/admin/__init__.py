"""Admin authentication."""
