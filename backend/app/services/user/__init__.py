"""
User service.
"""
from app.services.user.user_service import (
    create_user,
    get_user,
)

__all__ = [
    "create_user",
    "get_user",
]
