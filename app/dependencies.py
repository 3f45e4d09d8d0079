# app/dependencies.py
"""Request-scoped FastAPI dependencies shared by the routers."""

from typing import Optional
from fastapi import Header
from app.exceptions import Unauthorized


def get_actor_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """The acting user, as forwarded by the auth gateway in X-User-Id."""
    if not x_user_id:
        raise Unauthorized("Missing X-User-Id header")
    return x_user_id
