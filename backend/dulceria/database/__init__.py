"""
Database package initialization.

Submodules:
- base: declarative base and common mixins
- connection: async engine, session management and retry helpers
- models: ORM models for storefront entities
"""

__all__ = []
