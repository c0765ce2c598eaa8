"""
Core package for shared utilities.

Configuration, structured logging and admin token security used across the
storefront backend.
"""
