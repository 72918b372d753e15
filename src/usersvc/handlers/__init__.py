"""Request handlers for the user resource."""

from .users import UserHandlers, maps_service_errors, parse_user_body, parse_user_id

__all__ = [
    "UserHandlers",
    "maps_service_errors",
    "parse_user_body",
    "parse_user_id",
]
