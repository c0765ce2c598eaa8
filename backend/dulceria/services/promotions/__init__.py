"""Promotional code management."""
