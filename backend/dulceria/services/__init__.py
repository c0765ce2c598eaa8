"""Business services for the storefront backend."""
