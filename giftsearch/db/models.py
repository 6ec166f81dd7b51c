"""
SQLAlchemy ORM Models
Read-side table definitions used by the search backends.

The tables are owned and populated elsewhere; only the columns the
ranking engine reads are mapped here.
"""

from __future__ import annotations

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, Float, String, Text, TIMESTAMP
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

EMBEDDING_DIM = 1536

Base = declarative_base()


class Product(Base):
    """
    Catalog item.

    Searched by full text (title + description) and by embedding similarity.
    """

    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, server_default="0")
    category = Column(String(255), nullable=True, index=True)
    image_url = Column(Text, nullable=True)

    embedding = Column(Vector(EMBEDDING_DIM), nullable=True,
                       comment="Item embedding (text-embedding-3-small)")

    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, title={self.title!r})>"


class UserProfile(Base):
    """
    Per-user aggregate taste.

    preference_embedding is NULL until the user has enough interactions.
    """

    __tablename__ = "user_profiles"

    user_id = Column(String(64), primary_key=True)
    preference_embedding = Column(Vector(EMBEDDING_DIM), nullable=True,
                                  comment="Aggregate taste embedding")

    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<UserProfile(user_id={self.user_id})>"
