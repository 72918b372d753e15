"""
Table definitions for the user store.

    users
    ┌─────────┬──────────────────────────────┐
    │ id      │ integer, primary key, serial │
    │ name    │ varchar, not null            │
    │ email   │ varchar, not null            │
    └─────────┴──────────────────────────────┘

Email carries no uniqueness or format constraint.
"""

import logging

from sqlalchemy import Column, Integer, MetaData, String, Table
from sqlalchemy.engine import Engine


logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False),
)


def create_schema(engine: Engine) -> None:
    """
    Create the users table if it does not exist yet.

    Safe to run on every start: existing tables are left untouched.
    """
    metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database schema ready")
