"""
SQLAlchemy engine + session factory.
The SQL record store opens one short session per call from *SessionLocal*.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from playedit.core.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    # Health-check connections before handing them to the app
    pool_pre_ping=True,
    # Log every SQL statement in dev; silence in production
    echo=settings.is_dev,
)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Avoid lazy-load errors after commit
)
