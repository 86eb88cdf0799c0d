"""
Database Module

Contains SQLAlchemy models, Pydantic schemas, and database configuration.
"""

from docguard.db.database import Base, engine, SessionLocal, get_db
from docguard.db import models, schemas

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'get_db',
    'models',
    'schemas'
]
