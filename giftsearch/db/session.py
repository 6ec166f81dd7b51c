"""
Database Session
Provides the database session factory used by the SQL-backed search backends.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


def create_session_factory(database_url: str, pool_size: int = 5, max_overflow: int = 10):
    """
    Create a session factory bound to a new engine.

    Args:
        database_url: SQLAlchemy database URL
        pool_size: Connection pool size
        max_overflow: Extra connections allowed beyond the pool

    Returns:
        sessionmaker
    """
    engine = create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,  # Verify connections before using
    )
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
