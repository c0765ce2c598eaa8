"""
Checkout and order reconciliation.

Cart revalidation against the catalog, payment preparation, paid order
completion and the zero-total custom request path.
"""
