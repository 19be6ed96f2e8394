"""
Persistence gateway over SQLite.
"""
from storage.configurations import EntityConfiguration, get_configuration
from storage.database import Database, EntitySet, Session

__all__ = [
    "Database",
    "Session",
    "EntitySet",
    "EntityConfiguration",
    "get_configuration",
]
