"""Product and category catalog services."""
