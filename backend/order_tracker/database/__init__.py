"""
Database package initialization.

The package follows a modular structure:
- base: declarative base and mixins
- connection: async engine, session factory and FastAPI dependency
- models: SQLAlchemy ORM models for orders, stages, progress and notifications
"""

# Import submodules explicitly when needed to avoid circular dependencies

__all__ = []
