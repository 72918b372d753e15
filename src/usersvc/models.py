"""
Domain model for the user resource.

The store owns identity: a User is only ever built from a row that the
database handed back, so `id` is always set.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict


@dataclass(frozen=True)
class User:
    """A row of the `users` table."""

    id: int
    name: str
    email: str

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape: {"id": int, "name": str, "email": str}."""
        return asdict(self)
