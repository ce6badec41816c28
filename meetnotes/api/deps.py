"""FastAPI dependencies shared by the routers."""

import re

from fastapi import Header, Request

from meetnotes.core.exceptions import AuthenticationError, ValidationError
from meetnotes.services.container import Services

_OWNER_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def get_services(request: Request) -> Services:
    """Return the services container attached to the application."""
    return request.app.state.services


def validate_owner_id(owner_id: str | None) -> str:
    """Check the gateway-supplied owner id; it becomes part of storage paths."""
    if not owner_id:
        raise AuthenticationError()
    if not _OWNER_ID.match(owner_id):
        raise ValidationError("Malformed user id")
    return owner_id


def current_owner(x_user_id: str | None = Header(None)) -> str:
    """Authenticated owner id, set by the upstream gateway in ``X-User-Id``."""
    return validate_owner_id(x_user_id)
