"""
Database Module
"""
from .connection import init_database, close_database, get_db, get_engine, build_engine
from .models import Base, SchemaVariant

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_engine",
    "build_engine",
    "Base",
    "SchemaVariant",
]
