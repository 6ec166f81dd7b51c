"""
Database ORM Models
SQLAlchemy ORM models for database tables.
"""

from .models import Base, Product, UserProfile, EMBEDDING_DIM
from .session import create_session_factory

__all__ = [
    "Base",
    "Product",
    "UserProfile",
    "EMBEDDING_DIM",
    "create_session_factory",
]
