"""
=============================================================================
USER STORE
=============================================================================

Typed CRUD operations on the users table, on top of a pooled SQLAlchemy
engine.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       ONE CALL, ONE TRANSACTION                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   worker thread ──► engine.begin() ──► lease pooled connection       │
    │                          │                                           │
    │                          ├── execute statement                       │
    │                          ├── COMMIT (or ROLLBACK on exception)       │
    │                          └── connection returned to the pool         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A connection is never shared between two concurrent calls, so workers need
no lock around the store.

Failure mapping:
    no row for the id           ──► NotFound
    SQLAlchemyError (any cause) ──► StorageError, driver error logged

=============================================================================
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List

from sqlalchemy import create_engine, delete, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFound, StorageError
from ..models import User
from .schema import users


logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """
    Point bare PostgreSQL URLs at the psycopg 3 driver.

        postgres://u:p@db/users   ──► postgresql+psycopg://u:p@db/users
        postgresql://u:p@db/users ──► postgresql+psycopg://u:p@db/users

    URLs that already name a driver are returned unchanged.
    """
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


class UserStore:
    """
    Storage client for User rows.

        store = UserStore.from_url("postgresql://app:secret@db:5432/users")
        user = store.create_user("Ada", "ada@x.com")
        store.get_user(user.id)
        store.close()
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, url: str, pool_size: int = 5) -> "UserStore":
        """
        Build a store with its own connection pool.

        pool_pre_ping replaces connections the database dropped while they
        sat idle in the pool.
        """
        url = normalize_database_url(url)
        options = {"pool_pre_ping": True}

        if url.startswith("sqlite"):
            # Pooled connections move between worker threads
            options["connect_args"] = {"check_same_thread": False}
        else:
            options["pool_size"] = pool_size

        engine = create_engine(url, **options)
        logger.info(f"Storage engine created for {engine.url.render_as_string(hide_password=True)}")
        return cls(engine)

    def close(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            logger.error(f"Storage failure while trying to {action}: {e}")
            raise StorageError(f"Failed to {action}") from e

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def create_user(self, name: str, email: str) -> User:
        """Insert a row and return it with the id the database assigned."""
        with self._transaction("create user") as conn:
            result = conn.execute(insert(users).values(name=name, email=email))
            user_id = result.inserted_primary_key[0]
        return User(id=user_id, name=name, email=email)

    def list_users(self) -> List[User]:
        """All users, in whatever order the database returns them."""
        with self._transaction("list users") as conn:
            rows = conn.execute(select(users)).all()
        return [User(id=row.id, name=row.name, email=row.email) for row in rows]

    def get_user(self, user_id: int) -> User:
        with self._transaction("fetch user") as conn:
            row = conn.execute(select(users).where(users.c.id == user_id)).first()
        if row is None:
            raise NotFound(f"User {user_id} not found")
        return User(id=row.id, name=row.name, email=row.email)

    def update_user(self, user_id: int, name: str, email: str) -> User:
        """
        Overwrite name and email.

        Raises:
            NotFound: No row with that id existed before the update.
        """
        with self._transaction("update user") as conn:
            result = conn.execute(
                update(users).where(users.c.id == user_id).values(name=name, email=email)
            )
            if result.rowcount == 0:
                raise NotFound(f"User {user_id} not found")
        return User(id=user_id, name=name, email=email)

    def delete_user(self, user_id: int) -> None:
        with self._transaction("delete user") as conn:
            result = conn.execute(delete(users).where(users.c.id == user_id))
            if result.rowcount == 0:
                raise NotFound(f"User {user_id} not found")
