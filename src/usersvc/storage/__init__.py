"""
Relational storage for users (SQLAlchemy Core).

    schema.py   users table, create_schema(engine)
    store.py    UserStore: create/list/get/update/delete
"""

from .schema import create_schema, metadata, users
from .store import UserStore, normalize_database_url

__all__ = [
    "UserStore",
    "create_schema",
    "metadata",
    "normalize_database_url",
    "users",
]
