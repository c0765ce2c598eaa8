"""Editable storefront copy."""
